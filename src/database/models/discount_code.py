"""
Discount code database model and derived status rules.

This module defines the DiscountCode model together with the single rule set
that turns persisted fields into a status. ``derive_discount_status`` is the
Python form used when a row is already loaded; ``discount_status_clause`` is
the equivalent SQL predicate used when filtering or counting rows. Status is
never stored.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ColumnElement,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    and_,
    or_,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.core.logging import get_logger
from src.database.base import BaseModel

logger = get_logger(__name__)


class DiscountType(str, Enum):
    """Enumeration of discount types."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"

    @classmethod
    def from_string(cls, value: str) -> "DiscountType":
        """
        Convert string to DiscountType enum.

        Raises:
            ValueError: If value is not a valid discount type
        """
        try:
            return cls(value.lower())
        except ValueError as e:
            raise ValueError(
                f"Invalid discount type: {value}. "
                f"Must be one of: {', '.join(t.value for t in cls)}"
            ) from e


class DiscountStatus(str, Enum):
    """Derived discount code status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class DiscountCode(BaseModel):
    """
    Discount code owned by a store owner.

    Attributes:
        id: Unique identifier (UUID)
        owner_id: User who created the code
        code: Unique code string, trimmed and upper-cased
        discount_type: percentage or fixed
        discount_value: Percentage (whole number, at most 100) or fixed amount
        max_redemptions: Redemption ceiling
        current_redemptions: Redemptions so far (never above the ceiling)
        valid_from: Start of validity window
        valid_until: Optional end of validity window
        is_active: Manual activation flag, flipped off at the ceiling
        archived: Archived codes are hidden and can never be active
    """

    __tablename__ = "discount_codes"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="User who owns the code",
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Unique code string (upper case)",
    )

    discount_type: Mapped[DiscountType] = mapped_column(
        String(20),
        nullable=False,
        comment="percentage or fixed",
    )

    discount_value: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Discount value (percentage or fixed amount)",
    )

    max_redemptions: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Redemption ceiling",
    )

    current_redemptions: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Redemptions so far",
    )

    valid_from: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Start of validity window",
    )

    valid_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="End of validity window (NULL = open ended)",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Manual activation flag",
    )

    archived: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Archived codes are hidden from listings",
    )

    __table_args__ = (
        UniqueConstraint("code"),
        CheckConstraint("code = upper(code)", name="code_upper_case"),
        CheckConstraint("discount_value > 0", name="discount_value_positive"),
        CheckConstraint(
            "discount_type IN ('percentage', 'fixed')",
            name="discount_type_valid",
        ),
        CheckConstraint(
            "discount_type <> 'percentage' OR discount_value <= 100",
            name="percentage_max_100",
        ),
        CheckConstraint("max_redemptions > 0", name="max_redemptions_positive"),
        CheckConstraint(
            "current_redemptions >= 0",
            name="current_redemptions_non_negative",
        ),
        CheckConstraint(
            "current_redemptions <= max_redemptions",
            name="current_redemptions_within_ceiling",
        ),
        CheckConstraint(
            "valid_until IS NULL OR valid_until > valid_from",
            name="valid_date_range",
        ),
        Index("ix_discount_codes_owner_archived", "owner_id", "archived"),
        {"comment": "Discount codes with redemption ceilings"},
    )

    @property
    def status(self) -> DiscountStatus:
        """Status derived from the persisted fields at the current instant."""
        return derive_discount_status(self)

    @property
    def remaining_redemptions(self) -> int:
        """Redemptions left before the ceiling."""
        return max(0, self.max_redemptions - self.current_redemptions)

    def __repr__(self) -> str:
        return (
            f"<DiscountCode(code={self.code!r}, "
            f"redemptions={self.current_redemptions}/{self.max_redemptions}, "
            f"is_active={self.is_active}, archived={self.archived})>"
        )


def normalize_code(code: str) -> str:
    """Trim and upper-case a discount code as typed by a customer."""
    return code.strip().upper()


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def derive_discount_status(
    code: DiscountCode,
    now: Optional[datetime] = None,
) -> DiscountStatus:
    """
    Derive a discount code's status from its persisted fields.

    Archived wins over everything. Otherwise the code is active only when the
    manual flag is on, the window has started and not ended, and the ceiling
    has not been reached.

    Args:
        code: Discount code row
        now: Evaluation instant (defaults to the current UTC time)

    Returns:
        Derived status
    """
    if code.archived:
        return DiscountStatus.ARCHIVED

    now = _as_aware(now or datetime.now(timezone.utc))

    if not code.is_active:
        return DiscountStatus.INACTIVE
    if _as_aware(code.valid_from) > now:
        return DiscountStatus.INACTIVE
    if code.valid_until is not None and _as_aware(code.valid_until) < now:
        return DiscountStatus.INACTIVE
    if code.current_redemptions >= code.max_redemptions:
        return DiscountStatus.INACTIVE

    return DiscountStatus.ACTIVE


def discount_status_clause(
    status: DiscountStatus,
    now: Optional[datetime] = None,
) -> ColumnElement[bool]:
    """
    SQL predicate selecting discount codes whose derived status is ``status``.

    Mirrors ``derive_discount_status`` rule for rule.
    """
    now = _as_aware(now or datetime.now(timezone.utc))

    active = and_(
        DiscountCode.archived.is_(False),
        DiscountCode.is_active.is_(True),
        DiscountCode.valid_from <= now,
        or_(DiscountCode.valid_until.is_(None), DiscountCode.valid_until >= now),
        DiscountCode.current_redemptions < DiscountCode.max_redemptions,
    )

    if status == DiscountStatus.ARCHIVED:
        return DiscountCode.archived.is_(True)
    if status == DiscountStatus.ACTIVE:
        return active
    return and_(DiscountCode.archived.is_(False), ~active)
