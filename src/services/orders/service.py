"""
Order lifecycle service.

Reads committed orders and moves them through the status table defined on
OrderStatus. Cancelling an order cancels its invoice in the same transaction.
Cancellation neither restocks products nor gives back a discount redemption.
"""

import uuid
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.exceptions import InvalidStatusTransitionError, NotFoundError
from src.core.logging import get_logger
from src.database.connection import unit_of_work
from src.database.models.order import OrderStatus
from src.schemas.checkout import CommittedOrder
from src.services.invoices.service import InvoiceService
from src.services.orders.repository import OrderRepository

logger = get_logger(__name__)


class OrderService:
    """
    Service for reading orders and changing their status.

    Every call runs in its own unit of work.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        invoice_service: Optional[InvoiceService] = None,
    ):
        """
        Initialize order service.

        Args:
            session_factory: Session factory (defaults to the global one)
            invoice_service: Invoice service used to cancel invoices
        """
        self.session_factory = session_factory
        self.invoice_service = invoice_service or InvoiceService()

    async def get_order(self, order_id: uuid.UUID) -> CommittedOrder:
        """
        Get order details.

        Raises:
            NotFoundError: If order not found
        """
        logger.debug("Retrieving order", order_id=str(order_id))

        async with unit_of_work(self.session_factory, name="get_order") as session:
            order = await OrderRepository(session).get_order_by_id(order_id)
            if order is None:
                raise NotFoundError("Order", order_id)
            invoice = await self.invoice_service.get_by_order_id(session, order_id)
            return CommittedOrder.from_order(order, invoice)

    async def list_orders_for_user(
        self,
        user_id: uuid.UUID,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> dict[str, Any]:
        """
        Get orders for user with pagination.

        Returns:
            Dictionary containing orders and pagination info
        """
        logger.debug(
            "Retrieving user orders",
            user_id=str(user_id),
            status=status.value if status else None,
        )

        async with unit_of_work(self.session_factory, name="list_orders") as session:
            orders, total_count = await OrderRepository(session).get_user_orders(
                user_id=user_id,
                status=status,
                skip=skip,
                limit=limit,
            )

        return {
            "orders": [CommittedOrder.from_order(order) for order in orders],
            "total_count": total_count,
            "skip": skip,
            "limit": limit,
        }

    async def update_status(
        self,
        order_id: uuid.UUID,
        new_status: OrderStatus,
    ) -> CommittedOrder:
        """
        Move an order to ``new_status``.

        Raises:
            NotFoundError: If order not found
            InvalidStatusTransitionError: If the transition is not allowed
        """
        logger.info(
            "Updating order status",
            order_id=str(order_id),
            new_status=new_status.value,
        )

        async with unit_of_work(self.session_factory, name="update_order_status") as session:
            order = await OrderRepository(session).get_order_by_id(order_id)
            if order is None:
                raise NotFoundError("Order", order_id)

            old_status = order.status
            if not old_status.can_transition_to(new_status):
                logger.warning(
                    "Invalid order status transition",
                    order_id=str(order_id),
                    current_status=old_status.value,
                    target_status=new_status.value,
                )
                raise InvalidStatusTransitionError(
                    f"Cannot move order from {old_status.value} to {new_status.value}",
                    order_id=order_id,
                    current_status=old_status.value,
                    target_status=new_status.value,
                )

            order.status = new_status
            await session.flush()

            invoice = None
            if new_status == OrderStatus.CANCELLED:
                invoice = await self.invoice_service.cancel_for_order(session, order_id)
            else:
                invoice = await self.invoice_service.get_by_order_id(session, order_id)

        logger.info(
            "Order status updated",
            order_id=str(order_id),
            old_status=old_status.value,
            new_status=new_status.value,
        )
        return CommittedOrder.from_order(order, invoice)
