"""Database adapter implementations.

Default: SQLite adapter
"""

from .sqlite import SQLiteDatabaseAdapter

__all__ = ["SQLiteDatabaseAdapter"]
