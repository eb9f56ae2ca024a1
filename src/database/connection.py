"""
Database connection management with SQLAlchemy async engine.

This module provides async database connection management using SQLAlchemy 2.0
with connection pooling, a lazily created global session factory, and the
``unit_of_work`` context manager that wraps a group of writes in a single
transaction which commits on success and rolls back on any exception.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from src.core.config import get_settings
from src.core.logging import get_logger

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _convert_database_url_to_async(url: str) -> str:
    """
    Convert PostgreSQL URL to async format.

    Args:
        url: Database connection URL

    Returns:
        Async-compatible database URL with asyncpg driver
    """
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def create_engine() -> AsyncEngine:
    """
    Create async SQLAlchemy engine with connection pooling.

    Returns:
        Configured async SQLAlchemy engine
    """
    settings = get_settings()
    database_url = _convert_database_url_to_async(settings.database_url)

    pool_kwargs: dict = {}
    if settings.is_test:
        pool_kwargs["poolclass"] = NullPool
    else:
        pool_kwargs["pool_size"] = settings.db_pool_size
        pool_kwargs["max_overflow"] = settings.db_max_overflow

    engine = create_async_engine(
        database_url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_recycle=3600,
        connect_args={
            "server_settings": {
                "application_name": settings.app_name,
            },
            "command_timeout": 60,
            "timeout": 10,
        },
        **pool_kwargs,
    )

    logger.info(
        "Database engine created",
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        environment=settings.environment,
    )

    return engine


def get_engine() -> AsyncEngine:
    """
    Get or create the global async database engine.

    Raises:
        RuntimeError: If engine initialization fails
    """
    global _engine

    if _engine is None:
        try:
            _engine = create_engine()
        except Exception as e:
            logger.error(
                "Failed to create database engine",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RuntimeError(f"Database engine initialization failed: {e}") from e

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get or create the global session factory.

    Sessions keep attributes loaded after commit so committed orders can be
    serialized once their transaction has ended.
    """
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database session factory created")

    return _session_factory


async def apply_transaction_timeouts(
    session: AsyncSession,
    statement_timeout_seconds: Optional[int] = None,
    lock_timeout_seconds: Optional[int] = None,
) -> None:
    """
    Bound how long the current transaction may run and wait for row locks.

    ``SET LOCAL`` only lasts until the enclosing transaction ends, so the
    pooled connection goes back with its defaults.
    """
    if statement_timeout_seconds:
        await session.execute(
            text(f"SET LOCAL statement_timeout = {int(statement_timeout_seconds) * 1000}")
        )
    if lock_timeout_seconds:
        await session.execute(
            text(f"SET LOCAL lock_timeout = {int(lock_timeout_seconds) * 1000}")
        )


@asynccontextmanager
async def unit_of_work(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    *,
    name: str = "unit_of_work",
    statement_timeout_seconds: Optional[int] = None,
    lock_timeout_seconds: Optional[int] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Run a block of writes as one atomic transaction.

    Commits when the block exits normally. Any exception raised inside the
    block rolls every write back and is re-raised unchanged.

    Args:
        session_factory: Factory to open the session from (defaults to the global one)
        name: Label used in log events
        statement_timeout_seconds: Optional per-statement timeout
        lock_timeout_seconds: Optional lock wait timeout

    Yields:
        Session bound to the open transaction

    Example:
        async with unit_of_work(name="create_order") as session:
            session.add(order)
    """
    factory = session_factory or get_session_factory()

    async with factory() as session:
        try:
            async with session.begin():
                await apply_transaction_timeouts(
                    session,
                    statement_timeout_seconds=statement_timeout_seconds,
                    lock_timeout_seconds=lock_timeout_seconds,
                )
                logger.debug("Unit of work started", unit=name)
                yield session
        except Exception as e:
            logger.warning(
                "Unit of work rolled back",
                unit=name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        logger.debug("Unit of work committed", unit=name)


async def close_database_connections() -> None:
    """
    Close all database connections and dispose of the engine.

    This should be called during process shutdown.
    """
    global _engine, _session_factory

    if _engine is not None:
        try:
            await _engine.dispose()
            logger.info("Database connections closed and engine disposed")
        finally:
            _engine = None
            _session_factory = None
