"""
Database connection and transaction management
"""

import asyncio
import os
import threading
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import settings
from ..logging import get_logger

logger = get_logger(__name__)

# Global shared connection pool
_async_engine: AsyncEngine | None = None
_async_session_local: async_sessionmaker[AsyncSession] | None = None
_initialized = False
_init_lock = threading.Lock()  # Protect initialization from race conditions

CommitCallback = Callable[[], Awaitable[None] | None]


@dataclass
class Transaction:
    """Opaque per-request handle carried through every engine call.

    Wraps one AsyncSession. graphql-core may resolve sibling fields
    concurrently, so every use of the session goes through ``lock``.
    """

    session: AsyncSession
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    rollback_only: bool = False
    _after_commit: list[CommitCallback] = field(default_factory=list)

    def after_commit(self, callback: CommitCallback) -> None:
        """Register a callback that runs once the transaction has committed."""
        self._after_commit.append(callback)

    def set_rollback_only(self) -> None:
        """Mark the transaction so that it rolls back instead of committing."""
        self.rollback_only = True

    async def run_after_commit(self) -> None:
        callbacks, self._after_commit = self._after_commit, []
        for callback in callbacks:
            result = callback()
            if asyncio.iscoroutine(result):
                await result

    def discard_after_commit(self) -> None:
        self._after_commit.clear()


def get_database_url() -> str:
    """Get database URL, checking environment variables first for test compatibility."""
    return os.getenv("ENTITYGRAPH_DATABASE_URL") or settings.database_url


def to_async_url(database_url: str) -> str:
    """Map a plain database URL onto its asyncio driver."""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


def reset_database() -> None:
    """Reset database connections (for tests)."""
    global _async_engine, _async_session_local, _initialized
    _async_engine = None
    _async_session_local = None
    _initialized = False


async def test_database_connection() -> tuple[bool, str | None]:
    """
    Test the database connection and return helpful error messages.

    Returns:
        tuple: (success: bool, error_message: str | None)
    """
    if _async_engine is None:
        return False, "Database engine not initialized"

    try:
        async with _async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            return True, None
    except Exception as e:
        error_str = str(e)
        if "Connection refused" in error_str or "could not connect" in error_str:
            return False, (
                f"Cannot connect to database server: {error_str}\n"
                f"The database server appears to be down or unreachable."
            )
        elif "password authentication failed" in error_str:
            return False, (
                f"Database authentication failed: {error_str}\n"
                f"Please check your database credentials."
            )
        return False, f"Database connection error ({type(e).__name__}): {error_str}"


def init_database(
    database_url: str | None = None,
    force_reinit: bool = False,
    **engine_kwargs: Any,
) -> None:
    """Initialize the shared async engine and session factory.

    Thread-safe initialization using a lock to prevent race conditions
    when multiple threads attempt to initialize simultaneously.
    """
    global _async_engine, _async_session_local, _initialized

    # Fast path: already initialized, no lock needed
    if _initialized and not force_reinit and database_url is None:
        return

    with _init_lock:
        if _initialized and not force_reinit and database_url is None:
            return

        db_url = to_async_url(database_url or get_database_url())

        kwargs: dict[str, Any] = {"echo": settings.sql_echo}
        if db_url.startswith("postgresql+asyncpg://"):
            kwargs.update(
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                isolation_level=settings.database_isolation_level,
            )
        kwargs.update(engine_kwargs)

        _async_engine = create_async_engine(db_url, **kwargs)
        _async_session_local = async_sessionmaker(
            _async_engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )

        _initialized = True
        logger.info("Database initialized", database_url=db_url)


def get_async_engine() -> AsyncEngine:
    """Get the shared async SQLAlchemy engine."""
    if _async_engine is None:
        init_database()
    assert _async_engine is not None
    return _async_engine


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session (async) from shared pool."""
    if _async_session_local is None:
        init_database()

    if _async_session_local is None:
        raise RuntimeError("Async database not available")

    async with _async_session_local() as session:
        yield session


@asynccontextmanager
async def transaction(session: AsyncSession | None = None) -> AsyncGenerator[Transaction, None]:
    """Run one unit of work in a single database transaction.

    Commits on normal exit unless marked rollback-only, rolls back on any
    exception. After-commit callbacks only fire when the commit succeeded.
    """
    if session is not None:
        async with _transaction_scope(session) as tx:
            yield tx
        return

    async with get_async_session() as owned:
        async with _transaction_scope(owned) as tx:
            yield tx


@asynccontextmanager
async def _transaction_scope(session: AsyncSession) -> AsyncGenerator[Transaction, None]:
    tx = Transaction(session=session)
    try:
        yield tx
    except Exception:
        await session.rollback()
        tx.discard_after_commit()
        raise

    if tx.rollback_only:
        await session.rollback()
        tx.discard_after_commit()
        logger.debug("Transaction rolled back")
        return

    await session.commit()
    await tx.run_after_commit()
