"""Async engine, session factory, and the conflict-retrying transaction runner.

There is no module-level engine. The process entry point (FastAPI lifespan,
a CLI script, or a test fixture) constructs a ``Database`` and hands it to the
services that need it.
"""

import asyncio
import enum
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import sqlalchemy as sa
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from labvault.config import Settings, settings
from labvault.core.exceptions import TransactionConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}
UNIQUE_VIOLATION_SQLSTATE = "23505"


class Base(DeclarativeBase):
    # Enums are stored as plain VARCHAR (member names), not native PG enum types
    type_annotation_map = {
        enum.Enum: sa.Enum(enum.Enum, native_enum=False, length=32),
    }


def is_write_conflict(exc: DBAPIError) -> bool:
    """True when the error means a concurrent writer won and a retry may succeed.

    Unique violations count: two transactions racing to insert the same slot
    row or barcode collide on the key, and the retry then sees the winner's
    row through the normal occupancy/uniqueness checks.
    """
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True
    if isinstance(exc, IntegrityError):
        return (
            sqlstate == UNIQUE_VIOLATION_SQLSTATE
            or "UNIQUE constraint failed" in str(orig)
        )
    return False


class Database:
    """Owns the engine and runs units of work as retried transactions."""

    def __init__(
        self,
        url: str,
        *,
        max_attempts: int = 5,
        backoff_base: float = 0.05,
        backoff_max: float = 1.0,
        **engine_kwargs: Any,
    ) -> None:
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "Database":
        engine_kwargs: dict[str, Any] = {"echo": config.DB_ECHO}
        if not config.DATABASE_URL.startswith("sqlite"):
            engine_kwargs.update(
                pool_pre_ping=True,
                pool_size=config.DB_POOL_SIZE,
                max_overflow=config.DB_MAX_OVERFLOW,
            )
        return cls(
            config.DATABASE_URL,
            max_attempts=config.TX_MAX_ATTEMPTS,
            backoff_base=config.TX_BACKOFF_BASE_SECONDS,
            backoff_max=config.TX_BACKOFF_MAX_SECONDS,
            **engine_kwargs,
        )

    async def create_all(self) -> None:
        """Create every mapped table. Used by tests and local bootstrap."""
        import labvault.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Plain session for reads; callers own any transaction they start."""
        async with self.session_factory() as session:
            yield session

    async def run_transaction(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Run ``fn(session, *args, **kwargs)`` in one all-or-nothing transaction.

        Write conflicts roll back and retry with exponential backoff up to
        ``max_attempts``. Domain errors raised by ``fn`` are never retried.
        """
        attempt = 0
        while True:
            attempt += 1
            async with self.session_factory() as session:
                try:
                    async with session.begin():
                        result = await fn(session, *args, **kwargs)
                    return result
                except DBAPIError as exc:
                    if not is_write_conflict(exc):
                        raise
                    if attempt >= self.max_attempts:
                        logger.error(
                            "Transaction %s gave up after %d conflicting attempts",
                            getattr(fn, "__name__", fn),
                            attempt,
                        )
                        raise TransactionConflict(attempt) from exc
                    delay = min(self.backoff_base * 2 ** (attempt - 1), self.backoff_max)
                    logger.warning(
                        "Write conflict in %s (attempt %d/%d), retrying in %.3fs: %s",
                        getattr(fn, "__name__", fn),
                        attempt,
                        self.max_attempts,
                        delay,
                        exc.orig,
                    )
            await asyncio.sleep(delay)
