"""
Order and order line item models.

An Order is created exactly once per checkout together with its line items.
Line items capture the unit price at sale time, so later catalog price
changes never alter a committed order.
"""

import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    CheckConstraint,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import BaseModel


class OrderStatus(str, Enum):
    """
    Order status enumeration for tracking order lifecycle.

    Valid transitions:
    - PENDING -> PROCESSING, COMPLETED, CANCELLED
    - PROCESSING -> COMPLETED, CANCELLED
    - COMPLETED -> CANCELLED
    - CANCELLED -> (terminal state)
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """
        Create OrderStatus from string value.

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.lower())
        except ValueError:
            valid_values = ", ".join(s.value for s in cls)
            raise ValueError(
                f"Invalid order status: {value}. Valid values are: {valid_values}"
            )

    @property
    def is_terminal(self) -> bool:
        """Check if status is terminal (no further transitions)."""
        return self == OrderStatus.CANCELLED

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Check whether moving from this status to ``target`` is allowed."""
        return target in ORDER_STATUS_TRANSITIONS[self]


ORDER_STATUS_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.COMPLETED, OrderStatus.CANCELLED}
    ),
    OrderStatus.PROCESSING: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.CANCELLED: frozenset(),
}


class Order(BaseModel):
    """
    Order header.

    Attributes:
        id: Unique order identifier (UUID)
        user_id: User the sale is attributed to (registered or guest)
        store_id: Store the cart belonged to
        total: Monetary total, net of discount and including tax when the
            caller supplied an authoritative total
        status: Lifecycle status
        payment_method: Free-form payment method label
        order_metadata: Customer snapshot, discount linkage and tax breakdown
            (stored in the ``metadata`` column)
        items: Line items
    """

    __tablename__ = "orders"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        comment="User the order is attributed to",
    )

    store_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("stores.id", ondelete="SET NULL"),
        nullable=True,
        comment="Store the cart belonged to",
    )

    total: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Order total",
    )

    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(
            OrderStatus,
            name="order_status",
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=OrderStatus.COMPLETED,
        comment="Current order status",
    )

    payment_method: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Payment method label",
    )

    order_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
        comment="Customer snapshot, discount linkage and tax breakdown",
    )

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.line_number",
    )

    __table_args__ = (
        CheckConstraint("total >= 0", name="total_non_negative"),
        Index("ix_orders_user_id_created_at", "user_id", "created_at"),
        Index("ix_orders_store_id_created_at", "store_id", "created_at"),
        Index("ix_orders_status", "status"),
        {"comment": "Committed checkout orders"},
    )

    @property
    def discount_code(self) -> Optional[str]:
        """Discount code the customer applied, if any, normalized to upper case."""
        return extract_discount_code(self.order_metadata)


class OrderItem(BaseModel):
    """
    Order line item.

    Attributes:
        id: Unique line item identifier (UUID)
        order_id: Owning order
        product_id: Product sold
        line_number: 1-based position of the line in the cart
        quantity: Units sold (positive)
        price: Unit price captured at sale time
    """

    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        comment="Owning order",
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        comment="Product sold",
    )

    line_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="1-based position of the line in the cart",
    )

    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Units sold",
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Unit price captured at sale time",
    )

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="quantity_positive"),
        CheckConstraint("price >= 0", name="price_non_negative"),
        CheckConstraint("line_number > 0", name="line_number_positive"),
        UniqueConstraint("order_id", "line_number", name="uq_order_items_order_id_line_number"),
        Index("ix_order_items_order_id", "order_id"),
        Index("ix_order_items_product_id", "product_id"),
        {"comment": "Immutable order line items"},
    )

    @property
    def line_total(self) -> Decimal:
        """Unit price multiplied by quantity."""
        return self.price * self.quantity


def extract_discount_code(metadata: Optional[dict[str, Any]]) -> Optional[str]:
    """
    Read the discount code linked to an order from its metadata.

    Storefront clients send ``promoCode`` together with a ``promoApplied``
    flag; other callers may send ``discountCode``.

    Returns:
        Trimmed, upper-cased code or None when no code was applied
    """
    if not metadata:
        return None

    code = metadata.get("discountCode")
    if not code and metadata.get("promoApplied", True) is not False:
        code = metadata.get("promoCode")

    if not isinstance(code, str) or not code.strip():
        return None
    return code.strip().upper()
