"""
Invoice model.

An invoice is materialized from a committed order after the checkout
transaction has finished. Customer and store details are copied onto the
invoice at issuance so later edits to the store or user never rewrite an
issued document.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import BaseModel


class InvoiceStatus(str, Enum):
    """Invoice status enumeration."""

    ISSUED = "issued"
    PAID = "paid"
    CANCELLED = "cancelled"

    @classmethod
    def from_string(cls, value: str) -> "InvoiceStatus":
        """
        Create InvoiceStatus from string value.

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.lower())
        except ValueError:
            valid_values = ", ".join(s.value for s in cls)
            raise ValueError(
                f"Invalid invoice status: {value}. Valid values are: {valid_values}"
            )


class Invoice(BaseModel):
    """
    Invoice issued for exactly one order.

    Attributes:
        id: Unique invoice identifier (UUID)
        order_id: Order the invoice documents (unique)
        invoice_number: Human-readable number ``INV-YYYYMMDD-XXXXXX`` (unique)
        share_token: 64 hex characters granting public read access (unique)
        customer_*: Customer snapshot at issuance
        store_id: Store the sale belongs to
        store_*: Store snapshot at issuance
        items: Line item snapshot (product, quantity, unit price, line total)
        subtotal: Sum of line totals
        discount_amount: Discount reported by the client at checkout
        tax_amount: Tax reported by the client at checkout
        total: Order total
        payment_method: Payment method label
        status: issued, paid or cancelled
        issued_at: Issuance timestamp
        paid_at: Set when the invoice is marked paid
        invoice_metadata: Free-form metadata (stored in ``metadata`` column)
    """

    __tablename__ = "invoices"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        comment="Order the invoice documents",
    )

    invoice_number: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Human-readable invoice number",
    )

    share_token: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="Secret token for public invoice access",
    )

    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    customer_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    customer_postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    store_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("stores.id", ondelete="SET NULL"),
        nullable=True,
    )
    store_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    store_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    store_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    store_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    items: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
        comment="Line item snapshot",
    )

    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    status: Mapped[InvoiceStatus] = mapped_column(
        SQLEnum(
            InvoiceStatus,
            name="invoice_status",
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=InvoiceStatus.ISSUED,
        comment="Invoice status",
    )

    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    invoice_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
    )

    __table_args__ = (
        UniqueConstraint("order_id"),
        UniqueConstraint("invoice_number"),
        UniqueConstraint("share_token"),
        CheckConstraint("total >= 0", name="total_non_negative"),
        CheckConstraint("subtotal >= 0", name="subtotal_non_negative"),
        Index("ix_invoices_store_id_issued_at", "store_id", "issued_at"),
        {"comment": "Invoices materialized from committed orders"},
    )

    def __repr__(self) -> str:
        return (
            f"<Invoice(invoice_number={self.invoice_number!r}, "
            f"order_id={self.order_id}, status={self.status})>"
        )
