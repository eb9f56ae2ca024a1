"""
Invoice materialization and lookup.

Invoices are created after the checkout transaction has committed, in their
own unit of work, so a failure here never touches the sale itself.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.exceptions import InvalidInputError, NotFoundError
from src.core.logging import get_logger
from src.database.connection import unit_of_work
from src.database.models.invoice import Invoice, InvoiceStatus
from src.database.models.order import Order
from src.database.models.store import Store
from src.database.models.user import User
from src.services.documents.allocator import DocumentNumberAllocator
from src.services.inventory.pricing import compute_subtotal, to_money

logger = get_logger(__name__)

ZERO = Decimal("0.00")


def _optional_money(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return to_money(value)
    except InvalidInputError:
        return None


def customer_snapshot(order: Order, user: Optional[User]) -> dict[str, Optional[str]]:
    """
    Customer details to freeze on the invoice.

    The checkout form copy stored in order metadata wins; the user row fills
    anything the form left out.
    """
    metadata = order.order_metadata or {}
    form = metadata.get("customer") or metadata.get("customerData")
    if not isinstance(form, dict):
        # Free-form metadata; anything but an object carries no usable fields
        form = {}

    def pick(*keys: str) -> Optional[str]:
        for key in keys:
            value = form.get(key)
            if value:
                return str(value)
        return None

    return {
        "customer_name": pick("name") or (user.name if user else None) or "Customer",
        "customer_email": pick("email") or (user.email if user else None),
        "customer_address": pick("address") or (user.address if user else None),
        "customer_city": pick("city"),
        "customer_postal_code": pick("postalCode", "postal_code"),
        "customer_phone": pick("phone") or (user.phone if user else None),
    }


def amounts_from_order(order: Order) -> dict[str, Decimal]:
    """Subtotal from line items; discount and tax as reported by the client."""
    metadata = order.order_metadata or {}
    subtotal = compute_subtotal((item.price, item.quantity) for item in order.items)
    discount = _optional_money(metadata.get("discountAmount")) or ZERO

    before_tax = _optional_money(metadata.get("totalBeforeVAT"))
    with_tax = _optional_money(metadata.get("totalWithVAT"))
    tax = with_tax - before_tax if before_tax is not None and with_tax is not None else ZERO

    return {
        "subtotal": subtotal,
        "discount_amount": discount,
        "tax_amount": max(tax, ZERO),
        "total": order.total,
    }


class InvoiceService:
    """Creates invoices from committed orders and serves them back."""

    def __init__(self, allocator: Optional[DocumentNumberAllocator] = None):
        self.allocator = allocator or DocumentNumberAllocator()

    async def get_by_order_id(self, session: AsyncSession, order_id: uuid.UUID) -> Optional[Invoice]:
        result = await session.execute(select(Invoice).where(Invoice.order_id == order_id))
        return result.scalar_one_or_none()

    async def get_by_share_token(self, session: AsyncSession, share_token: str) -> Invoice:
        """
        Public lookup by share token.

        Raises:
            NotFoundError: If no invoice carries the token
        """
        result = await session.execute(select(Invoice).where(Invoice.share_token == share_token))
        invoice = result.scalar_one_or_none()
        if invoice is None:
            # The token is a secret, keep it out of the logs
            logger.info("Invoice share token lookup missed")
            raise NotFoundError("Invoice", "for share token")
        return invoice

    async def get_by_invoice_number(self, session: AsyncSession, invoice_number: str) -> Invoice:
        result = await session.execute(
            select(Invoice).where(Invoice.invoice_number == invoice_number.strip().upper())
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFoundError("Invoice", invoice_number)
        return invoice

    async def materialize(self, session: AsyncSession, order_id: uuid.UUID) -> Invoice:
        """
        Create the invoice for a committed order, or return the existing one.

        Args:
            session: Session of the invoice unit of work
            order_id: Committed order

        Returns:
            Invoice for the order

        Raises:
            NotFoundError: If the order does not exist
            AllocationExhaustedError: If no unique number or token was found
        """
        existing = await self.get_by_order_id(session, order_id)
        if existing is not None:
            logger.debug(
                "Invoice already exists for order",
                order_id=str(order_id),
                invoice_number=existing.invoice_number,
            )
            return existing

        order = (
            await session.execute(select(Order).where(Order.id == order_id))
        ).scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order", order_id)

        store = None
        if order.store_id is not None:
            store = (
                await session.execute(select(Store).where(Store.id == order.store_id))
            ).scalar_one_or_none()
        user = (
            await session.execute(select(User).where(User.id == order.user_id))
        ).scalar_one_or_none()

        invoice_number = await self.allocator.allocate_invoice_number(session)
        share_token = await self.allocator.allocate_share_token(session)

        invoice = Invoice(
            id=uuid.uuid4(),
            order_id=order.id,
            invoice_number=invoice_number,
            share_token=share_token,
            store_id=order.store_id,
            store_name=store.name if store else None,
            store_address=store.address if store else None,
            store_phone=store.phone if store else None,
            store_email=store.email if store else None,
            items=[
                {
                    "product_id": str(item.product_id),
                    "quantity": item.quantity,
                    "price": str(item.price),
                    "line_total": str(item.line_total),
                }
                for item in order.items
            ],
            payment_method=order.payment_method,
            status=InvoiceStatus.ISSUED,
            issued_at=datetime.now(timezone.utc),
            invoice_metadata={
                key: value
                for key, value in (order.order_metadata or {}).items()
                if key in ("promoCode", "discountCode", "storeSlug", "totalBeforeVAT", "totalWithVAT")
            },
            **customer_snapshot(order, user),
            **amounts_from_order(order),
        )
        session.add(invoice)
        await session.flush()

        logger.info(
            "Invoice materialized",
            order_id=str(order.id),
            invoice_id=str(invoice.id),
            invoice_number=invoice_number,
        )
        return invoice

    async def try_materialize(
        self,
        order_id: uuid.UUID,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ) -> Optional[Invoice]:
        """
        Best-effort materialization in its own unit of work.

        Returns:
            Invoice, or None when materialization failed (the failure is logged)
        """
        try:
            async with unit_of_work(session_factory, name="materialize_invoice") as session:
                return await self.materialize(session, order_id)
        except Exception as e:
            logger.warning(
                "Invoice materialization failed, order kept",
                order_id=str(order_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def update_status(
        self,
        session: AsyncSession,
        invoice_id: uuid.UUID,
        status: InvoiceStatus,
    ) -> Invoice:
        """
        Set an invoice's status; ``paid`` stamps ``paid_at``.

        Raises:
            NotFoundError: If the invoice does not exist
        """
        invoice = (
            await session.execute(select(Invoice).where(Invoice.id == invoice_id))
        ).scalar_one_or_none()
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)

        old_status = invoice.status
        invoice.status = status
        if status == InvoiceStatus.PAID and invoice.paid_at is None:
            invoice.paid_at = datetime.now(timezone.utc)
        await session.flush()

        logger.info(
            "Invoice status updated",
            invoice_id=str(invoice_id),
            old_status=getattr(old_status, "value", old_status),
            new_status=status.value,
        )
        return invoice

    async def cancel_for_order(self, session: AsyncSession, order_id: uuid.UUID) -> Optional[Invoice]:
        """Cancel the invoice of an order, if it has one."""
        invoice = await self.get_by_order_id(session, order_id)
        if invoice is None or invoice.status == InvoiceStatus.CANCELLED:
            return invoice

        invoice.status = InvoiceStatus.CANCELLED
        await session.flush()
        logger.info(
            "Invoice cancelled with order",
            order_id=str(order_id),
            invoice_id=str(invoice.id),
        )
        return invoice
