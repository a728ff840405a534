"""SQLite database adapter implementing IDatabaseAdapter.

This adapter provides the default catalog store using SQLite
with SQLAlchemy async driver (aiosqlite).
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from core.exceptions import CatalogStoreError
from core.interfaces import CatalogScope, IDatabaseAdapter
from persistence.database import create_engine, create_session_factory, init_db

from .repositories import SQLiteModelConfigRepository, SQLiteModelRepository

logger = logging.getLogger(__name__)


class SQLiteDatabaseAdapter(IDatabaseAdapter):
    """SQLite implementation of the database adapter.

    Manages the database connection and hands out repositories bound
    to one transaction at a time. Every ``session()`` block gets its own
    AsyncSession, so concurrent background tasks never share one.

    Usage:
        adapter = SQLiteDatabaseAdapter("sqlite+aiosqlite:///./modelhub.db")
        await adapter.initialize()

        async with adapter.session() as scope:
            model = await scope.models.get_by_name("llama3.2:1b")

        await adapter.close()
    """

    def __init__(self, database_url: str, echo: bool = False):
        """Initialize the SQLite adapter.

        Args:
            database_url: SQLAlchemy database URL (sqlite+aiosqlite://...)
            echo: Enable SQL query logging
        """
        self._database_url = database_url
        self._echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def initialize(self) -> None:
        """Initialize the database connection and create tables."""
        self._engine = create_engine(self._database_url, echo=self._echo)
        self._session_factory = create_session_factory(self._engine)
        try:
            await init_db(self._engine)
        except SQLAlchemyError as e:
            raise CatalogStoreError(f"Failed to initialize database: {e}") from e

    async def close(self) -> None:
        """Close database connections."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    async def health_check(self) -> bool:
        """Check if database is accessible."""
        if not self._engine:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("Database health check failed")
            return False

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[CatalogScope, None]:
        """Context manager for one catalog transaction.

        Commits when the block exits normally and rolls back on any
        exception. Storage failures surface as CatalogStoreError.

        Usage:
            async with adapter.session() as scope:
                await scope.models.hard_delete("123")
        """
        if not self._session_factory:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        async with self._session_factory() as session:
            scope = CatalogScope(
                models=SQLiteModelRepository(session),
                configs=SQLiteModelConfigRepository(session),
            )
            try:
                yield scope
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise CatalogStoreError(str(e)) from e
            except BaseException:
                await session.rollback()
                raise
