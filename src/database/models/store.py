"""
Store model for storefront tenants.

Read-only for the checkout pipeline: it needs the owner (to stop owners
checking out of their own store as customers), the display name (for guest
names and invoice snapshots) and the contact details frozen onto invoices.
"""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import BaseModel


class Store(BaseModel):
    """
    Storefront owned by one user.

    Attributes:
        id: Unique store identifier (UUID)
        owner_id: User who owns the store
        name: Display name
        slug: URL slug (unique)
        address: Postal address printed on invoices
        phone: Contact phone printed on invoices
        email: Contact e-mail printed on invoices
        logo_url: Logo printed on invoices
    """

    __tablename__ = "stores"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Owning user",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Store display name",
    )

    slug: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        comment="URL slug",
    )

    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    __table_args__ = (
        UniqueConstraint("slug"),
        {"comment": "Storefront tenants"},
    )

    def is_owned_by(self, user_id: Optional[uuid.UUID]) -> bool:
        """Check whether ``user_id`` owns this store."""
        return user_id is not None and self.owner_id == user_id
