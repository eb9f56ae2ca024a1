"""
Product model carrying catalog price and stock counter.

The stock counter is guarded by a CHECK constraint and is only ever mutated
by the conditional decrement in the inventory ledger.
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import BaseModel


class Product(BaseModel):
    """
    Sellable product.

    Attributes:
        id: Unique product identifier (UUID)
        store_id: Store selling the product
        name: Display name
        sku: Optional stock keeping unit
        price: Current catalog unit price
        stock: Units on hand (never negative)
    """

    __tablename__ = "products"

    store_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        comment="Store selling the product",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Product display name",
    )

    sku: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Stock keeping unit",
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Current catalog unit price",
    )

    stock: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Units on hand",
    )

    __table_args__ = (
        CheckConstraint("stock >= 0", name="stock_non_negative"),
        CheckConstraint("price >= 0", name="price_non_negative"),
        Index("ix_products_store_id", "store_id"),
        {"comment": "Catalog products with stock counters"},
    )
