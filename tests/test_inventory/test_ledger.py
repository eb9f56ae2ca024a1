"""
Tests for the inventory ledger.

The SQL behaviour is exercised against a mocked AsyncSession: a returned row
means the conditional decrement matched, no row means the stock guard
rejected it.
"""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.dialects import postgresql

from src.core.exceptions import InsufficientStockError, InvalidInputError
from src.database.models.product import Product
from src.services.inventory.ledger import InventoryLedger


@pytest.fixture
def ledger() -> InventoryLedger:
    return InventoryLedger()


def _product(stock: int = 5) -> Product:
    return Product(
        id=uuid.uuid4(),
        store_id=uuid.uuid4(),
        name="Mug",
        price=Decimal("10.00"),
        stock=stock,
    )


class TestReserve:
    """Test suite for the conditional stock decrement."""

    @pytest.mark.asyncio
    async def test_reserve_success_returns_remaining(
        self, ledger, mock_session: AsyncMock, result_factory
    ):
        """Test that a matched decrement returns the remaining stock."""
        # Arrange
        mock_session.execute.return_value = result_factory(scalar=3)

        # Act
        remaining = await ledger.reserve(mock_session, uuid.uuid4(), 2)

        # Assert
        assert remaining == 3
        mock_session.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reserve_emits_guarded_update(
        self, ledger, mock_session: AsyncMock, result_factory
    ):
        """Test that the decrement is guarded by ``stock >= quantity``."""
        mock_session.execute.return_value = result_factory(scalar=0)

        await ledger.reserve(mock_session, uuid.uuid4(), 2)

        statement = mock_session.execute.await_args.args[0]
        sql = str(statement.compile(dialect=postgresql.dialect())).lower()
        assert sql.startswith("update products")
        assert "products.stock >=" in sql
        assert "returning products.stock" in sql

    @pytest.mark.asyncio
    async def test_reserve_insufficient_stock_names_product(
        self, ledger, mock_session: AsyncMock, result_factory
    ):
        """Test that a rejected decrement raises with product and quantities."""
        # Arrange
        product_id = uuid.uuid4()
        mock_session.execute.side_effect = [
            result_factory(scalar=None),
            result_factory(scalar=1),
        ]

        # Act
        with pytest.raises(InsufficientStockError) as exc_info:
            await ledger.reserve(mock_session, product_id, 2)

        # Assert
        error = exc_info.value
        assert error.product_id == product_id
        assert error.requested == 2
        assert error.available == 1
        assert error.code == "INSUFFICIENT_STOCK"
        assert str(product_id) in str(error)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -1])
    async def test_reserve_rejects_non_positive_quantity(
        self, ledger, mock_session: AsyncMock, quantity: int
    ):
        """Test that zero or negative quantities never reach the database."""
        with pytest.raises(InvalidInputError):
            await ledger.reserve(mock_session, uuid.uuid4(), quantity)

        mock_session.execute.assert_not_awaited()


class TestLoadProducts:
    """Test suite for the batch product lookup."""

    @pytest.mark.asyncio
    async def test_load_products_single_query_for_duplicates(
        self, ledger, mock_session: AsyncMock, result_factory
    ):
        """Test that duplicate ids are fetched once in one query."""
        # Arrange
        product = _product()
        mock_session.execute.return_value = result_factory(scalars=[product])

        # Act
        products = await ledger.load_products(mock_session, [product.id, product.id])

        # Assert
        assert products == {product.id: product}
        mock_session.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_load_products_unknown_id_rejected(
        self, ledger, mock_session: AsyncMock, result_factory
    ):
        """Test that an unknown product id is an input error."""
        # Arrange
        known = _product()
        unknown_id = uuid.uuid4()
        mock_session.execute.return_value = result_factory(scalars=[known])

        # Act
        with pytest.raises(InvalidInputError) as exc_info:
            await ledger.load_products(mock_session, [known.id, unknown_id])

        # Assert
        assert exc_info.value.context["product_id"] == unknown_id

    @pytest.mark.asyncio
    async def test_load_products_empty(
        self, ledger, mock_session: AsyncMock, result_factory
    ):
        """Test that no ids means no query."""
        assert await ledger.load_products(mock_session, []) == {}
        mock_session.execute.assert_not_awaited()


class TestGetStock:
    """Test suite for stock lookups."""

    @pytest.mark.asyncio
    async def test_get_stock_missing_product(
        self, ledger, mock_session: AsyncMock, result_factory
    ):
        mock_session.execute.return_value = result_factory(scalar=None)

        assert await ledger.get_stock(mock_session, uuid.uuid4()) is None
