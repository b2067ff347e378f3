"""
Database handle for Bookshelf.

Owns the async engine and session factory. One instance is built by the
application factory and reaches routes through dependency injection, so
tests can hand each app its own isolated database.
"""

import json

from loguru import logger
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from .models import Base


def _json_dumps(value) -> str:
    # Keep non-ASCII text searchable with LIKE
    return json.dumps(value, ensure_ascii=False)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Async engine plus session factory.

    Usage:
        database = Database("sqlite+aiosqlite:///./bookshelf.db")
        await database.create_tables()

        async with database.session() as session:
            ...

        await database.dispose()
    """

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        pool_timeout: float = 30.0,
    ):
        """
        Initialize engine and session factory.

        Args:
            database_url: SQLAlchemy async database URL
            echo: Log every statement
            pool_timeout: Seconds to wait for a pooled connection (or, on
                SQLite, for a locked database)
        """
        self.database_url = database_url
        self.is_sqlite = database_url.startswith("sqlite")

        engine_kwargs = {
            "echo": echo,
            "pool_pre_ping": True,
            "json_serializer": _json_dumps,
        }
        if self.is_sqlite:
            engine_kwargs["connect_args"] = {"timeout": pool_timeout}
        else:
            engine_kwargs["pool_timeout"] = pool_timeout

        self.engine = create_async_engine(database_url, **engine_kwargs)

        if self.is_sqlite:
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        logger.info(f"Database configured: {database_url[:50]}")

    def session(self) -> AsyncSession:
        """Open a new session (use as an async context manager)."""
        return self.session_factory()

    async def create_tables(self) -> None:
        """Create database tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()
