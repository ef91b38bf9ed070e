"""
Storage - Database.

============================================================
RESPONSIBILITY
============================================================
Manages the async engine, sessions and transactions for the
backing store.

- Provides connection pooling
- Manages database sessions
- Handles connection lifecycle
- Explicit transaction boundaries

============================================================
DATABASE REQUIREMENTS
============================================================
- PostgreSQL via asyncpg in production
- SQLite via aiosqlite for local use and tests
- SQLAlchemy asyncio ORM

============================================================
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from storage.models.base import Base
from storage.repositories.exceptions import ConnectionError, TransactionError


logger = logging.getLogger(__name__)


# ============================================================
# CONFIGURATION
# ============================================================

@dataclass
class DatabaseConfig:
    """Connection settings for the backing store."""

    url: str = "sqlite+aiosqlite:///route_profiles.db"
    """SQLAlchemy async database URL."""

    echo: bool = False
    """Log SQL statements."""

    pool_size: int = 5
    """Connections kept in the pool (server databases only)."""

    max_overflow: int = 10
    """Connections allowed beyond pool_size (server databases only)."""

    pool_timeout_seconds: int = 30
    """Seconds to wait for a pooled connection (server databases only)."""

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        return self.is_sqlite and (":memory:" in self.url or self.url.endswith("://"))

    def safe_url(self) -> str:
        """URL without credentials, for logging."""
        return self.url.split("@")[-1]


# ============================================================
# DATABASE
# ============================================================

class Database:
    """
    Async database handle.

    Injected into services; nothing in the engine keeps a global
    engine or session.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self._config = config or DatabaseConfig()
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    def get_engine(self) -> AsyncEngine:
        if self._engine is None:
            raise ConnectionError(
                repository_name="Database",
                operation="get_engine",
                original_error="database is not connected",
            )
        return self._engine

    async def connect(self) -> None:
        """Create the engine and session factory."""
        if self._engine is not None:
            return

        logger.info(f"Creating database engine for: {self._config.safe_url()}")

        kwargs = {"echo": self._config.echo}
        if self._config.is_memory:
            # One shared connection, otherwise every session sees a fresh database
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        elif not self._config.is_sqlite:
            kwargs["pool_size"] = self._config.pool_size
            kwargs["max_overflow"] = self._config.max_overflow
            kwargs["pool_timeout"] = self._config.pool_timeout_seconds
            kwargs["pool_pre_ping"] = True

        self._engine = create_async_engine(self._config.url, **kwargs)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False,
        )

    async def disconnect(self) -> None:
        """Dispose of the engine and all pooled connections."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database engine disposed")

    async def create_all(self) -> None:
        """
        Create all tables registered on Base.

        Raises:
            ConnectionError: If the tables cannot be created
        """
        # Register the route profile tables on Base.metadata
        from storage.models import route_profiles  # noqa: F401

        await self.connect()
        try:
            async with self.get_engine().begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}")
            raise ConnectionError(
                repository_name="Database",
                operation="create_all",
                original_error=str(e),
            ) from e

    async def health_check(self) -> bool:
        """Return True when a trivial query round-trips."""
        try:
            async with self.get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, ConnectionError) as e:
            logger.warning(f"Database health check failed: {e}")
            return False

    # --------------------------------------------------------
    # SESSIONS
    # --------------------------------------------------------

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Read-only session; rolled back and closed on exit.

        Usage:
            async with database.session() as session:
                rows = await ProfileRepository(session).list_profiles("global")
        """
        if self._session_factory is None:
            await self.connect()
        session = self._session_factory()
        try:
            yield session
        finally:
            await session.close()

    @asynccontextmanager
    async def transaction(self, operation: str = "transaction") -> AsyncIterator[AsyncSession]:
        """
        Context manager for explicit transaction boundaries.

        Commits only if no exception occurs; rolls back on ANY
        exception. Exceptions raised by the caller propagate
        unchanged, a failing commit raises TransactionError.

        Usage:
            async with database.transaction("generate_routes") as session:
                ...
        """
        if self._session_factory is None:
            await self.connect()
        session = self._session_factory()
        try:
            try:
                yield session
            except BaseException:
                await session.rollback()
                logger.debug(f"Transaction rolled back: {operation}")
                raise
            try:
                await session.commit()
            except SQLAlchemyError as e:
                logger.error(f"Commit failed for {operation}, rolling back: {e}")
                await session.rollback()
                raise TransactionError(
                    repository_name="Database",
                    operation=operation,
                    phase="commit",
                    original_error=str(e),
                ) from e
            logger.debug(f"Transaction committed: {operation}")
        finally:
            await session.close()
