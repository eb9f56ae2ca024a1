"""
Inventory ledger guarding product stock counters.

Stock is only ever decremented through one conditional UPDATE
(``stock = stock - n WHERE stock >= n``). The row lock taken by that UPDATE
serializes concurrent checkouts on the same product, so of two transactions
racing for the last unit exactly one sees a matching row. The caller's unit
of work owns commit and rollback; a failed reservation raises and the whole
unit is rolled back.
"""

import uuid
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import InsufficientStockError, InvalidInputError
from src.core.logging import get_logger
from src.database.models.product import Product

logger = get_logger(__name__)


class InventoryLedger:
    """Stock lookups and conditional decrements for products."""

    async def load_products(
        self,
        session: AsyncSession,
        product_ids: Iterable[uuid.UUID],
    ) -> dict[uuid.UUID, Product]:
        """
        Fetch every referenced product in a single query.

        Args:
            session: Session of the enclosing unit of work
            product_ids: Product ids referenced by the cart (duplicates allowed)

        Returns:
            Products keyed by id

        Raises:
            InvalidInputError: If any product id does not exist
        """
        unique_ids = list(dict.fromkeys(product_ids))
        if not unique_ids:
            return {}

        result = await session.execute(select(Product).where(Product.id.in_(unique_ids)))
        products = {product.id: product for product in result.scalars().all()}

        missing = [pid for pid in unique_ids if pid not in products]
        if missing:
            logger.warning(
                "Cart references unknown products",
                product_ids=[str(pid) for pid in missing],
            )
            raise InvalidInputError(
                f"Unknown product {missing[0]}",
                product_id=missing[0],
                missing_product_ids=[str(pid) for pid in missing],
            )

        return products

    async def get_stock(
        self,
        session: AsyncSession,
        product_id: uuid.UUID,
    ) -> Optional[int]:
        """Current stock of a product, or None if it does not exist."""
        result = await session.execute(select(Product.stock).where(Product.id == product_id))
        return result.scalar_one_or_none()

    async def reserve(
        self,
        session: AsyncSession,
        product_id: uuid.UUID,
        quantity: int,
    ) -> int:
        """
        Decrement a product's stock by ``quantity`` if enough units remain.

        Args:
            session: Session of the enclosing unit of work
            product_id: Product to reserve
            quantity: Units to take (positive)

        Returns:
            Stock remaining after the decrement

        Raises:
            InvalidInputError: If quantity is not positive
            InsufficientStockError: If fewer than ``quantity`` units remain
        """
        if quantity <= 0:
            raise InvalidInputError(
                "Reservation quantity must be positive",
                product_id=product_id,
                quantity=quantity,
            )

        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .returning(Product.stock)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        remaining = result.scalar_one_or_none()

        if remaining is None:
            available = await self.get_stock(session, product_id)
            logger.warning(
                "Insufficient stock for reservation",
                product_id=str(product_id),
                requested=quantity,
                available=available,
            )
            raise InsufficientStockError(product_id, quantity, available)

        logger.info(
            "Stock reserved",
            product_id=str(product_id),
            quantity=quantity,
            remaining=remaining,
        )
        return remaining
