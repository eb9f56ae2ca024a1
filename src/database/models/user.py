"""
User model for registered customers, store owners and guest checkouts.

The checkout pipeline only reads users by e-mail and creates minimal guest
users; every other account operation is owned by the identity service.
"""

import enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum as SQLEnum,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import BaseModel


class UserRole(str, enum.Enum):
    """User role enumeration."""

    CUSTOMER = "customer"
    STORE_OWNER = "store_owner"
    ADMIN = "admin"

    @classmethod
    def from_string(cls, value: str) -> "UserRole":
        """
        Convert string to UserRole enum.

        Raises:
            ValueError: If value is not a valid role
        """
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Invalid role: {value}")


class User(BaseModel):
    """
    User account.

    Attributes:
        id: Unique user identifier (UUID)
        email: Lower-cased e-mail address (unique)
        name: Display name
        password_hash: Bcrypt hash; guests get the hash of a discarded secret
        role: User role
        is_guest: Whether the account was created by a guest checkout
        phone: Optional phone number captured at checkout
        address: Optional postal address captured at checkout
        created_at: Record creation timestamp
        updated_at: Last modification timestamp
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="User email address (stored lower-cased)",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name",
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password",
    )

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="user_role", native_enum=False),
        nullable=False,
        default=UserRole.CUSTOMER,
        comment="User role",
    )

    is_guest: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Created by an unauthenticated checkout",
    )

    phone: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Phone number captured at checkout",
    )

    address: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Postal address captured at checkout",
    )

    __table_args__ = (
        UniqueConstraint("email"),
        Index("ix_users_is_guest", "is_guest"),
        CheckConstraint("email = lower(email)", name="email_lower_case"),
        CheckConstraint("length(name) >= 1", name="name_min_length"),
        {"comment": "User accounts, including guest checkout identities"},
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', is_guest={self.is_guest})>"
