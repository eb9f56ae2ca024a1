"""
Database models package initialization.

This module exports all database models for SQLAlchemy and Alembic auto-generation.
Models are imported here to ensure they are registered with the Base metadata
for proper migration generation and relationship resolution.
"""

from src.database.base import Base, BaseModel, TimestampMixin, UUIDMixin
from src.database.models.user import User, UserRole
from src.database.models.store import Store
from src.database.models.product import Product
from src.database.models.order import Order, OrderItem, OrderStatus
from src.database.models.discount_code import (
    DiscountCode,
    DiscountStatus,
    DiscountType,
)
from src.database.models.invoice import Invoice, InvoiceStatus

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "User",
    "UserRole",
    "Store",
    "Product",
    "Order",
    "OrderItem",
    "OrderStatus",
    "DiscountCode",
    "DiscountStatus",
    "DiscountType",
    "Invoice",
    "InvoiceStatus",
]
