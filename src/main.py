"""
Process lifecycle for hosts embedding the checkout pipeline.

The HTTP layer lives elsewhere; it enters ``lifespan()`` once at startup and
uses the coordinator it yields for every checkout.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text

from src.core.config import get_settings
from src.core.logging import configure_logging, get_logger, log_performance
from src.database.connection import close_database_connections, unit_of_work
from src.services.orders.coordinator import (
    OrderTransactionCoordinator,
    get_order_coordinator,
)

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan() -> AsyncIterator[OrderTransactionCoordinator]:
    """
    Startup and shutdown around the lifetime of the hosting process.

    Yields:
        Shared checkout coordinator
    """
    settings = get_settings()

    logger.info(
        "Checkout pipeline starting",
        environment=settings.environment,
        debug=settings.debug,
    )

    with log_performance(logger, "application_startup"):
        coordinator = get_order_coordinator()

    try:
        yield coordinator
    finally:
        logger.info("Checkout pipeline shutting down")
        with log_performance(logger, "application_shutdown"):
            await close_database_connections()


async def readiness_check() -> dict[str, str | bool]:
    """
    Verify the database answers.

    Returns:
        Dictionary with readiness status and dependency checks
    """
    db_status = "healthy"
    ready = True

    try:
        async with unit_of_work(name="readiness_check") as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(
            "Database connectivity check failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        db_status = "unhealthy"
        ready = False

    return {"ready": ready, "database": db_status}
