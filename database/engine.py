"""
Database handle.

The application builds one ``Database`` at startup (see ``api.main``) and
passes it to every service function. Multi-write operations run inside
``unit_of_work()`` so that either every write lands or none does.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import BigInteger, Integer
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)

# BIGINT autoincrement only works as INTEGER PRIMARY KEY on SQLite
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


# Base class for declarative models
class Base(DeclarativeBase):
    pass


class DatabaseNotOpenError(RuntimeError):
    """Raised when a session is requested before ``open()``."""


class Database:
    """
    Explicitly constructed data-access handle.

    Args:
        url: Async SQLAlchemy URL (``postgresql+asyncpg://...``,
            ``sqlite+aiosqlite://...``)
        **engine_options: Passed through to ``create_async_engine``
    """

    def __init__(self, url: str, **engine_options: Any):
        self.url = url
        self.engine_options = engine_options
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise DatabaseNotOpenError("Database has not been opened")
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    async def open(self) -> None:
        """Create the engine and session factory."""
        if self._engine is not None:
            return
        self._engine = create_async_engine(self.url, **self.engine_options)
        self._sessionmaker = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )
        logger.info(f"Database engine opened for {self._engine.url.render_as_string(hide_password=True)}")

    async def close(self) -> None:
        """Dispose the engine and every pooled connection."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Database engine closed")

    async def create_all(self) -> None:
        """Create every table known to ``Base.metadata``."""
        # Registers every model on Base.metadata
        import database.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        import database.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Plain session for reads. Nothing is committed."""
        if self._sessionmaker is None:
            raise DatabaseNotOpenError("Database has not been opened")
        async with self._sessionmaker() as session:
            yield session

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[AsyncSession]:
        """
        Session bound to a single transaction.

        Commits when the block exits normally and rolls back when it
        raises, so no partial write is ever observable.
        """
        if self._sessionmaker is None:
            raise DatabaseNotOpenError("Database has not been opened")
        async with self._sessionmaker() as session:
            async with session.begin():
                yield session


def build_database(settings) -> Database:
    """Build the application database handle from settings."""
    options: dict[str, Any] = {"echo": settings.database_echo}
    if not settings.database_url.startswith("sqlite"):
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
        options["pool_pre_ping"] = True
    return Database(settings.database_url, **options)
