"""
Order data access repository.

Writes happen inside the caller's unit of work; the repository only adds
and flushes, it never commits or rolls back.
"""

import uuid
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import get_logger
from src.database.models.order import Order, OrderItem, OrderStatus

logger = get_logger(__name__)


class OrderRepository:
    """
    Repository for order data access operations.

    Provides async methods to insert an order header and its line items and
    to read orders back with their items loaded.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize order repository.

        Args:
            session: Async database session
        """
        self.session = session

    async def add_order(
        self,
        user_id: uuid.UUID,
        total: Decimal,
        store_id: Optional[uuid.UUID] = None,
        payment_method: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        status: OrderStatus = OrderStatus.COMPLETED,
    ) -> Order:
        """
        Insert an order header with no line items yet.

        Args:
            user_id: User the order is attributed to
            total: Order total
            store_id: Store the cart belonged to
            payment_method: Payment method label
            metadata: Customer snapshot, discount linkage and tax breakdown
            status: Initial status

        Returns:
            Flushed order
        """
        order = Order(
            id=uuid.uuid4(),
            user_id=user_id,
            store_id=store_id,
            total=total,
            status=status,
            payment_method=payment_method,
            order_metadata=dict(metadata or {}),
            items=[],
        )
        self.session.add(order)
        await self.session.flush()

        logger.debug(
            "Order header inserted",
            order_id=str(order.id),
            user_id=str(user_id),
            total=str(total),
        )
        return order

    async def add_item(
        self,
        order: Order,
        product_id: uuid.UUID,
        quantity: int,
        price: Decimal,
    ) -> OrderItem:
        """Attach the next numbered line item to an order and flush it."""
        item = OrderItem(
            id=uuid.uuid4(),
            order_id=order.id,
            product_id=product_id,
            line_number=len(order.items) + 1,
            quantity=quantity,
            price=price,
        )
        order.items.append(item)
        await self.session.flush()
        return item

    async def get_order_by_id(self, order_id: uuid.UUID) -> Optional[Order]:
        """
        Get order by ID with its line items.

        Returns:
            Order if found, None otherwise
        """
        logger.debug("Fetching order by ID", order_id=str(order_id))
        result = await self.session.execute(select(Order).where(Order.id == order_id))
        return result.scalar_one_or_none()

    async def get_user_orders(
        self,
        user_id: uuid.UUID,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Order], int]:
        """
        Get orders for user with pagination, newest first.

        Returns:
            Tuple of (orders, total_count)
        """
        conditions = [Order.user_id == user_id]
        if status:
            conditions.append(Order.status == status)

        stmt = (
            select(Order)
            .where(and_(*conditions))
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(Order).where(and_(*conditions))

        result = await self.session.execute(stmt)
        count_result = await self.session.execute(count_stmt)

        orders = result.scalars().all()
        total_count = count_result.scalar_one()

        logger.debug(
            "User orders fetched",
            user_id=str(user_id),
            count=len(orders),
            total=total_count,
        )
        return orders, total_count
