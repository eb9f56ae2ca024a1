"""
Structured logging configuration with JSON formatting and checkout correlation.

This module provides centralized structlog configuration with JSON output in
deployed environments, a colored console renderer in development, checkout ID
correlation through a context variable, and a small timing helper
for measuring how long database units of work hold their locks.
"""

import logging
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

import structlog
from structlog.types import EventDict, Processor

from src.core.config import get_settings

# Context variable for checkout correlation
checkout_id_ctx: ContextVar[Optional[str]] = ContextVar("checkout_id", default=None)

SLOW_OPERATION_THRESHOLD_MS = 500


def add_checkout_id(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Add the current checkout correlation ID to log event.

    Every log line emitted while a checkout is in flight (identity
    resolution, stock reservation, discount redemption, invoice
    materialization) carries the same checkout_id.
    """
    checkout_id = checkout_id_ctx.get()
    if checkout_id:
        event_dict["checkout_id"] = checkout_id
    return event_dict


def add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO format UTC timestamp to log event."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def add_logger_name(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add logger name to event dictionary."""
    event_dict["logger"] = logger.name
    return event_dict


def configure_logging() -> None:
    """
    Configure structured logging with JSON formatting.

    Sets up structlog with appropriate processors for development and
    deployed environments. Configures log levels and output handlers based
    on application settings.
    """
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_timestamp,
        structlog.stdlib.add_log_level,
        add_logger_name,
        add_checkout_id,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    # Use console renderer for development, JSON everywhere else
    if settings.is_development:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )

    # Set log levels for third-party libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def set_checkout_id(checkout_id: Optional[str] = None) -> str:
    """
    Start a checkout correlation scope.

    Args:
        checkout_id: Optional checkout ID, generates UUID if not provided

    Returns:
        Checkout ID that was set
    """
    if checkout_id is None:
        checkout_id = str(uuid4())
    checkout_id_ctx.set(checkout_id)
    return checkout_id


def get_checkout_id() -> Optional[str]:
    """Get current checkout ID from context."""
    return checkout_id_ctx.get()


def clear_context() -> None:
    """
    Clear all context variables.

    Should be called when a checkout finishes so its correlation ID does not
    leak into unrelated work executed by the same task.
    """
    checkout_id_ctx.set(None)


class PerformanceLogger:
    """
    Context manager for performance logging.

    Logs execution time of code blocks with structured context.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.start_time: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.perf_counter()
        self.logger.debug(
            "Operation started",
            operation=self.operation,
            **self.context,
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is None:
            return

        duration_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type is not None:
            self.logger.error(
                "Operation failed",
                operation=self.operation,
                duration_ms=round(duration_ms, 2),
                error_type=exc_type.__name__,
                **self.context,
            )
        else:
            log_method = (
                self.logger.warning
                if duration_ms > SLOW_OPERATION_THRESHOLD_MS
                else self.logger.info
            )
            log_method(
                "Operation completed",
                operation=self.operation,
                duration_ms=round(duration_ms, 2),
                **self.context,
            )


def log_performance(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    **context: Any,
) -> PerformanceLogger:
    """
    Create performance logger context manager.

    Args:
        logger: Logger instance to use
        operation: Operation name for logging
        **context: Additional context to include in logs

    Returns:
        PerformanceLogger context manager

    Example:
        >>> logger = get_logger(__name__)
        >>> with log_performance(logger, "reserve_stock", order_id=order_id):
        ...     await ledger.reserve(session, product_id, 2)
    """
    return PerformanceLogger(logger, operation, **context)
