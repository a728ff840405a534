"""Database engine and schema setup."""

import logging

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

logger = logging.getLogger(__name__)


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine. SQLite connections get WAL and foreign keys."""
    is_sqlite = make_url(database_url).get_backend_name() == "sqlite"
    engine = create_async_engine(
        database_url,
        echo=echo,
        future=True,
        connect_args={"timeout": 30} if is_sqlite else {},  # Wait up to 30s for database locks
    )

    if is_sqlite:
        # Enable WAL mode for better concurrency (allows concurrent reads during writes)
        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")  # Required for ON DELETE CASCADE
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")  # Faster writes, still safe with WAL
            cursor.execute("PRAGMA busy_timeout=30000")  # 30s timeout at SQLite level
            cursor.close()

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by the repositories."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create the catalog tables if they do not exist."""
    from .models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized at %s", engine.url.render_as_string(hide_password=True))
