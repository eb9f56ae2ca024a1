"""
Discount code redemption tracking.

Redemption is a single conditional UPDATE that increments the counter only
while it is below the ceiling and switches the code off when the new count
reaches it. Two concurrent redemptions of the last slot therefore cannot both
succeed, and the counter never passes the ceiling.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import case, false, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import DiscountCodeExhaustedError, InvalidInputError, NotFoundError
from src.core.logging import get_logger
from src.database.models.discount_code import (
    DiscountCode,
    DiscountStatus,
    discount_status_clause,
    normalize_code,
)

logger = get_logger(__name__)


class DiscountRedemptionTracker:
    """Redeems discount codes and reports their derived status."""

    async def get_by_code(self, session: AsyncSession, code: str) -> Optional[DiscountCode]:
        """Look up a discount code by its normalized value."""
        result = await session.execute(
            select(DiscountCode).where(DiscountCode.code == normalize_code(code))
        )
        return result.scalar_one_or_none()

    async def redeem(self, session: AsyncSession, code: str) -> DiscountCode:
        """
        Record one redemption of a discount code.

        Args:
            session: Session of the enclosing unit of work
            code: Code as typed by the customer

        Returns:
            Updated discount code

        Raises:
            InvalidInputError: If the code is blank
            NotFoundError: If no such code exists
            DiscountCodeExhaustedError: If the ceiling was already reached
        """
        normalized = normalize_code(code or "")
        if not normalized:
            raise InvalidInputError("Discount code must not be empty")

        next_count = DiscountCode.current_redemptions + 1
        stmt = (
            update(DiscountCode)
            .where(
                DiscountCode.code == normalized,
                DiscountCode.current_redemptions < DiscountCode.max_redemptions,
            )
            .values(
                current_redemptions=next_count,
                is_active=case(
                    (next_count >= DiscountCode.max_redemptions, false()),
                    else_=DiscountCode.is_active,
                ),
                updated_at=func.now(),
            )
            .returning(DiscountCode)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        updated = result.scalar_one_or_none()

        if updated is None:
            existing = await self.get_by_code(session, normalized)
            if existing is None:
                logger.warning("Discount code not found", code=normalized)
                raise NotFoundError("Discount code", normalized, discount_code=normalized)

            logger.warning(
                "Discount code redemption ceiling reached",
                code=normalized,
                current_redemptions=existing.current_redemptions,
                max_redemptions=existing.max_redemptions,
            )
            raise DiscountCodeExhaustedError(
                f"Discount code {normalized} has no redemptions left",
                discount_code=normalized,
                max_redemptions=existing.max_redemptions,
            )

        logger.info(
            "Discount code redeemed",
            code=normalized,
            current_redemptions=updated.current_redemptions,
            max_redemptions=updated.max_redemptions,
        )
        if not updated.is_active and updated.current_redemptions >= updated.max_redemptions:
            logger.info(
                "Discount code deactivated at redemption ceiling",
                code=normalized,
                max_redemptions=updated.max_redemptions,
            )

        return updated

    async def list_codes(
        self,
        session: AsyncSession,
        owner_id: uuid.UUID,
        status: Optional[DiscountStatus] = None,
        now: Optional[datetime] = None,
    ) -> list[DiscountCode]:
        """
        List an owner's discount codes, newest first.

        Archived codes are only returned when ``status`` is ARCHIVED.
        """
        query = select(DiscountCode).where(DiscountCode.owner_id == owner_id)
        if status is None:
            query = query.where(DiscountCode.archived.is_(False))
        else:
            query = query.where(discount_status_clause(status, now))

        result = await session.execute(query.order_by(DiscountCode.created_at.desc()))
        return list(result.scalars().all())

    async def stats(
        self,
        session: AsyncSession,
        owner_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Count an owner's codes per derived status."""

        def count_where(clause):
            return func.count(case((clause, 1)))

        query = select(
            count_where(DiscountCode.archived.is_(False)).label("total"),
            count_where(discount_status_clause(DiscountStatus.ACTIVE, now)).label("active"),
            count_where(discount_status_clause(DiscountStatus.INACTIVE, now)).label("inactive"),
            count_where(discount_status_clause(DiscountStatus.ARCHIVED, now)).label("archived"),
        ).where(DiscountCode.owner_id == owner_id)

        row = (await session.execute(query)).one()
        return {
            "total": row.total or 0,
            "active": row.active or 0,
            "inactive": row.inactive or 0,
            "archived": row.archived or 0,
        }
