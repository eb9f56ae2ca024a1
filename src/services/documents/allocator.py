"""
Allocation of invoice numbers and public share tokens.

Candidates are drawn from ``secrets`` and checked against existing invoices.
The unique constraints on ``invoices`` remain the final guard; the check here
keeps the retry loop in-process instead of failing the insert.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import get_settings
from src.core.exceptions import AllocationExhaustedError
from src.core.logging import get_logger
from src.core.security import generate_hex_token, generate_random_code
from src.database.models.invoice import Invoice

logger = get_logger(__name__)

INVOICE_NUMBER_PREFIX = "INV"
INVOICE_SUFFIX_LENGTH = 6
SHARE_TOKEN_BYTES = 32


def generate_invoice_number(now: Optional[datetime] = None) -> str:
    """
    Build a candidate invoice number ``INV-YYYYMMDD-XXXXXX``.

    The date is the allocation instant in UTC, not the order date.
    """
    now = now or datetime.now(timezone.utc)
    suffix = generate_random_code(INVOICE_SUFFIX_LENGTH)
    return f"{INVOICE_NUMBER_PREFIX}-{now:%Y%m%d}-{suffix}"


def generate_share_token() -> str:
    """256-bit random token, hex encoded."""
    return generate_hex_token(SHARE_TOKEN_BYTES)


class DocumentNumberAllocator:
    """Collision-checked allocation of invoice identifiers."""

    def __init__(self, max_attempts: Optional[int] = None):
        """
        Initialize allocator.

        Args:
            max_attempts: Retry bound; defaults to the configured value
        """
        self.max_attempts = max_attempts or get_settings().document_allocation_max_attempts

    async def allocate_invoice_number(self, session: AsyncSession) -> str:
        """
        Allocate an unused invoice number.

        Raises:
            AllocationExhaustedError: If every attempt collided
        """
        return await self._allocate(
            session,
            kind="invoice_number",
            column=Invoice.invoice_number,
            generate=generate_invoice_number,
        )

    async def allocate_share_token(self, session: AsyncSession) -> str:
        """
        Allocate an unused share token.

        Raises:
            AllocationExhaustedError: If every attempt collided
        """
        return await self._allocate(
            session,
            kind="share_token",
            column=Invoice.share_token,
            generate=generate_share_token,
        )

    async def _is_taken(self, session: AsyncSession, column: Any, value: str) -> bool:
        result = await session.execute(select(Invoice.id).where(column == value).limit(1))
        return result.scalar_one_or_none() is not None

    async def _allocate(
        self,
        session: AsyncSession,
        kind: str,
        column: Any,
        generate: Callable[[], str],
    ) -> str:
        for attempt in range(1, self.max_attempts + 1):
            candidate = generate()
            if not await self._is_taken(session, column, candidate):
                logger.debug("Document identifier allocated", kind=kind, attempt=attempt)
                return candidate

            logger.info(
                "Document identifier collision, retrying",
                kind=kind,
                attempt=attempt,
                max_attempts=self.max_attempts,
            )

        logger.error(
            "Document identifier allocation exhausted",
            kind=kind,
            max_attempts=self.max_attempts,
        )
        raise AllocationExhaustedError(
            f"Could not allocate a unique {kind} after {self.max_attempts} attempts",
            kind=kind,
            max_attempts=self.max_attempts,
        )
