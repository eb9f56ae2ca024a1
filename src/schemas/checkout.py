"""
Checkout Pydantic schemas.

Input models accept the storefront's camelCase keys (``productId``,
``paymentMethod``) as well as snake_case field names. Output models serialize
committed orders and invoices for the calling layer.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from src.core.exceptions import InvalidInputError
from src.database.models.invoice import InvoiceStatus
from src.database.models.order import extract_discount_code

# Largest value the INTEGER quantity columns hold
MAX_QUANTITY = 2_147_483_647


class CustomerForm(BaseModel):
    """Customer details typed into the checkout form. Every field is optional."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20, alias="postalCode")
    phone: Optional[str] = Field(None, max_length=50)

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat empty strings as missing."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v: Optional[str]) -> Optional[str]:
        """Validate and lower-case the e-mail."""
        if v is None:
            return v
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Invalid email format")
        return v.lower()

    @property
    def has_data(self) -> bool:
        """Whether the customer filled in anything at all."""
        return any(
            value is not None
            for value in (
                self.name,
                self.email,
                self.address,
                self.city,
                self.postal_code,
                self.phone,
            )
        )


class CartItem(BaseModel):
    """One cart line."""

    model_config = ConfigDict(populate_by_name=True)

    product_id: UUID = Field(..., alias="productId", description="Product identifier")
    quantity: int = Field(..., gt=0, le=MAX_QUANTITY, description="Units requested")
    price: Optional[Decimal] = Field(
        None,
        description="Explicit unit price; the catalog price is used when omitted",
    )

    @field_validator("quantity", mode="before")
    @classmethod
    def reject_non_integer_quantity(cls, v: Any) -> Any:
        """Quantities must be whole numbers."""
        if isinstance(v, bool) or (isinstance(v, float) and not v.is_integer()):
            raise ValueError("Quantity must be a positive integer")
        return v


class CartPayload(BaseModel):
    """Tenant-scoped cart handed over by the HTTP layer."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[CartItem] = Field(..., min_length=1)
    payment_method: Optional[str] = Field(None, max_length=50, alias="paymentMethod")
    total: Optional[Decimal] = Field(
        None,
        ge=0,
        description="Authoritative total in whole cents, already net of discount and tax",
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
    store_id: Optional[UUID] = Field(None, alias="storeId")
    store_slug: Optional[str] = Field(None, alias="storeSlug")
    customer: Optional[CustomerForm] = None

    @field_validator("total")
    @classmethod
    def reject_sub_cent_total(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        """The total is stored as given, so it must not need rounding."""
        if v is not None and v.normalize().as_tuple().exponent < -2:
            raise ValueError("Total must not have more than two decimal places")
        return v

    @model_validator(mode="after")
    def fill_store_from_metadata(self) -> "CartPayload":
        """Storefront clients put the store reference in metadata."""
        if self.store_id is None and self.metadata.get("storeId"):
            try:
                self.store_id = UUID(str(self.metadata["storeId"]))
            except ValueError as e:
                raise ValueError("metadata.storeId is not a valid UUID") from e
        if self.store_slug is None and self.metadata.get("storeSlug"):
            self.store_slug = str(self.metadata["storeSlug"])
        return self

    @property
    def discount_code(self) -> Optional[str]:
        """Discount code referenced by the cart metadata, if any."""
        return extract_discount_code(self.metadata)

    @classmethod
    def parse(cls, data: dict[str, Any]) -> "CartPayload":
        """
        Validate a raw cart payload.

        Raises:
            InvalidInputError: If the payload is malformed
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            errors = [
                {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
                for err in e.errors()
            ]
            raise InvalidInputError("Invalid cart payload", errors=errors) from e


class CommittedOrderItem(BaseModel):
    """Line item of a committed order."""

    model_config = ConfigDict(from_attributes=True)

    product_id: UUID
    quantity: int
    price: Decimal


class InvoiceSummary(BaseModel):
    """Identifiers and status of a materialized invoice."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    invoice_number: str
    share_token: str
    status: InvoiceStatus
    total: Decimal
    issued_at: Optional[datetime] = None


class CommittedOrder(BaseModel):
    """Order returned to the caller once the checkout transaction committed."""

    id: UUID
    user_id: UUID
    total: Decimal
    status: str
    payment_method: Optional[str] = None
    store_id: Optional[UUID] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    items: list[CommittedOrderItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    invoice_id: Optional[UUID] = None
    invoice_number: Optional[str] = None
    invoice_share_token: Optional[str] = None

    @classmethod
    def from_order(cls, order: Any, invoice: Optional[Any] = None) -> "CommittedOrder":
        """Build the response from an Order row and an optional Invoice row."""
        return cls(
            id=order.id,
            user_id=order.user_id,
            total=order.total,
            status=getattr(order.status, "value", order.status),
            payment_method=order.payment_method,
            store_id=order.store_id,
            metadata=dict(order.order_metadata or {}),
            items=[CommittedOrderItem.model_validate(item) for item in order.items],
            created_at=order.created_at,
            invoice_id=invoice.id if invoice is not None else None,
            invoice_number=invoice.invoice_number if invoice is not None else None,
            invoice_share_token=invoice.share_token if invoice is not None else None,
        )
