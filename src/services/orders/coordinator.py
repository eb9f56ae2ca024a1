"""
Checkout orchestration.

The coordinator turns a tenant-scoped cart into a committed order:

1. resolve the customer identity in its own short transaction;
2. open one unit of work that validates and prices every line, inserts the
   order header, reserves stock line by line and inserts the line items;
3. after commit, record the discount redemption and optionally issue the
   invoice, each in its own unit of work and each allowed to fail without
   touching the committed order.

Stock reservations and order rows share a single transaction, so a cart with
any line over stock leaves no trace at all.
"""

import uuid
from decimal import Decimal
from typing import Any, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.config import Settings, get_settings
from src.core.exceptions import InvalidInputError
from src.core.logging import clear_context, get_logger, log_performance, set_checkout_id
from src.database.connection import unit_of_work
from src.database.models.discount_code import DiscountCode
from src.database.models.order import Order
from src.schemas.checkout import CartPayload, CommittedOrder
from src.services.discounts.tracker import DiscountRedemptionTracker
from src.services.identity.resolver import GuestIdentityResolver
from src.services.inventory.ledger import InventoryLedger
from src.services.inventory.pricing import compute_subtotal, resolve_line_price, to_money
from src.services.invoices.service import InvoiceService
from src.services.orders.repository import OrderRepository
from src.services.stores.repository import StoreRepository

logger = get_logger(__name__)


class OrderTransactionCoordinator:
    """Runs checkouts as atomic units of work."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        ledger: Optional[InventoryLedger] = None,
        tracker: Optional[DiscountRedemptionTracker] = None,
        resolver: Optional[GuestIdentityResolver] = None,
        invoice_service: Optional[InvoiceService] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize coordinator.

        Args:
            session_factory: Session factory (defaults to the global one)
            ledger: Stock ledger
            tracker: Discount redemption tracker
            resolver: Guest identity resolver
            invoice_service: Invoice service for post-commit materialization
            settings: Application settings
        """
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.ledger = ledger or InventoryLedger()
        self.tracker = tracker or DiscountRedemptionTracker()
        self.resolver = resolver or GuestIdentityResolver(self.settings.guest_email_domain)
        self.invoice_service = invoice_service or InvoiceService()

    @staticmethod
    def _parse_cart(cart: Union[CartPayload, dict[str, Any]]) -> CartPayload:
        if isinstance(cart, CartPayload):
            return cart
        return CartPayload.parse(cart)

    @staticmethod
    def _order_metadata(cart: CartPayload) -> dict[str, Any]:
        metadata = dict(cart.metadata)
        if cart.customer is not None and cart.customer.has_data and "customer" not in metadata:
            metadata["customer"] = cart.customer.model_dump(by_alias=True, exclude_none=True)
        return metadata

    async def create_order(
        self,
        owner_user_id: Optional[uuid.UUID],
        cart: Union[CartPayload, dict[str, Any]],
    ) -> Order:
        """
        Create an order with its line items and stock reservations atomically.

        Args:
            owner_user_id: User the order is attributed to
            cart: Cart payload

        Returns:
            Committed order with line items attached

        Raises:
            InvalidInputError: If the cart or user id is invalid
            NotFoundError: If the cart names a store that does not exist
            InsufficientStockError: If any line exceeds available stock; no
                stock is decremented and no order is stored
        """
        if not owner_user_id:
            raise InvalidInputError("Order owner user id is required")
        cart = self._parse_cart(cart)

        with log_performance(
            logger,
            "create_order",
            user_id=str(owner_user_id),
            item_count=len(cart.items),
        ):
            async with unit_of_work(
                self.session_factory,
                name="create_order",
                statement_timeout_seconds=self.settings.checkout_statement_timeout_seconds,
                lock_timeout_seconds=self.settings.checkout_lock_timeout_seconds,
            ) as session:
                store = await StoreRepository(session).resolve(cart.store_id, cart.store_slug)
                store_id = store.id if store is not None else None

                products = await self.ledger.load_products(
                    session, [item.product_id for item in cart.items]
                )

                lines: list[tuple[uuid.UUID, int, Decimal]] = []
                for item in cart.items:
                    product = products[item.product_id]
                    if store_id is not None and product.store_id != store_id:
                        raise InvalidInputError(
                            f"Product {item.product_id} does not belong to this store",
                            product_id=item.product_id,
                            store_id=store_id,
                        )
                    price = resolve_line_price(item.product_id, product.price, item.price)
                    lines.append((item.product_id, item.quantity, price))

                if cart.total is not None:
                    total = to_money(cart.total)
                else:
                    total = compute_subtotal((price, quantity) for _, quantity, price in lines)

                repository = OrderRepository(session)
                order = await repository.add_order(
                    user_id=owner_user_id,
                    total=total,
                    store_id=store_id,
                    payment_method=cart.payment_method,
                    metadata=self._order_metadata(cart),
                )

                for product_id, quantity, price in lines:
                    await self.ledger.reserve(session, product_id, quantity)
                    await repository.add_item(order, product_id, quantity, price)

        logger.info(
            "Order committed",
            order_id=str(order.id),
            user_id=str(owner_user_id),
            store_id=str(store_id) if store_id else None,
            total=str(order.total),
            item_count=len(order.items),
        )

        await self.redeem_discount(order)
        return order

    async def redeem_discount(self, order: Order) -> Optional[DiscountCode]:
        """
        Record the order's discount redemption, if it used a code.

        Runs after the order committed; failures are logged and swallowed.
        """
        code = order.discount_code
        if code is None:
            return None

        try:
            async with unit_of_work(self.session_factory, name="redeem_discount") as session:
                return await self.tracker.redeem(session, code)
        except Exception as e:
            logger.warning(
                "Discount redemption failed, order kept",
                order_id=str(order.id),
                code=code,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def resolve_identity(
        self,
        logged_in_user_id: Optional[uuid.UUID],
        cart: CartPayload,
    ) -> uuid.UUID:
        """Resolve the order owner in a transaction of its own."""
        async with unit_of_work(self.session_factory, name="resolve_identity") as session:
            return await self.resolver.resolve_checkout_identity(
                session,
                logged_in_user_id,
                customer_form=cart.customer,
                store_id=cart.store_id,
                store_slug=cart.store_slug,
            )

    async def checkout(
        self,
        logged_in_user_id: Optional[uuid.UUID],
        cart: Union[CartPayload, dict[str, Any]],
        issue_invoice: bool = False,
    ) -> CommittedOrder:
        """
        Full checkout: identity, order, discount redemption, optional invoice.

        Args:
            logged_in_user_id: Authenticated user, if any
            cart: Cart payload
            issue_invoice: Materialize the invoice right after commit

        Returns:
            Committed order; invoice fields are set when an invoice was issued

        Raises:
            InvalidInputError, NotFoundError, IdentityResolutionError,
            InsufficientStockError: Propagated from the failing step
        """
        set_checkout_id()
        try:
            cart = self._parse_cart(cart)
            user_id = await self.resolve_identity(logged_in_user_id, cart)
            order = await self.create_order(user_id, cart)

            invoice = None
            if issue_invoice:
                invoice = await self.invoice_service.try_materialize(
                    order.id, self.session_factory
                )

            logger.info(
                "Checkout completed",
                order_id=str(order.id),
                invoice_issued=invoice is not None,
            )
            return CommittedOrder.from_order(order, invoice)
        finally:
            clear_context()


_coordinator: Optional[OrderTransactionCoordinator] = None


def get_order_coordinator() -> OrderTransactionCoordinator:
    """
    Get or create global checkout coordinator instance.

    Returns:
        Singleton coordinator
    """
    global _coordinator

    if _coordinator is None:
        _coordinator = OrderTransactionCoordinator()
        logger.info("Order transaction coordinator initialized")

    return _coordinator
