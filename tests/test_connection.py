"""
Tests for the unit of work and database URL handling.
"""

import pytest

from src.database.connection import _convert_database_url_to_async, unit_of_work
from src.database.models.order import Order


class TestUnitOfWork:
    """Test suite for transactional scoping."""

    @pytest.mark.asyncio
    async def test_commits_on_success(self, session_factory, fake_db):
        async with unit_of_work(session_factory, name="test") as session:
            session.add(Order(total=1))

        assert fake_db.commits == 1
        assert fake_db.rollbacks == 0
        assert len(fake_db.orders) == 1

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises(self, session_factory, fake_db):
        """Test that an exception undoes pending work and propagates unchanged."""
        # Arrange
        undone = []

        # Act
        with pytest.raises(KeyError):
            async with unit_of_work(session_factory, name="test") as session:
                session.add(Order(total=1))
                session.undo.append(lambda: undone.append(True))
                raise KeyError("boom")

        # Assert
        assert fake_db.commits == 0
        assert fake_db.rollbacks == 1
        assert fake_db.orders == []
        assert undone == [True]

    @pytest.mark.asyncio
    async def test_transaction_timeouts_applied(self, session_factory):
        async with unit_of_work(
            session_factory,
            name="test",
            statement_timeout_seconds=5,
            lock_timeout_seconds=2,
        ):
            pass

        statements = [str(s) for s in session_factory.sessions[0].executed]
        assert statements == [
            "SET LOCAL statement_timeout = 5000",
            "SET LOCAL lock_timeout = 2000",
        ]

    @pytest.mark.asyncio
    async def test_no_timeouts_by_default(self, session_factory):
        async with unit_of_work(session_factory):
            pass

        assert session_factory.sessions[0].executed == []


class TestDatabaseUrl:
    """Test suite for URL conversion."""

    def test_plain_postgres_url_gets_asyncpg_driver(self):
        url = _convert_database_url_to_async("postgresql://u:p@db:5432/checkout")

        assert url == "postgresql+asyncpg://u:p@db:5432/checkout"

    def test_async_url_unchanged(self):
        url = "postgresql+asyncpg://u:p@db:5432/checkout"

        assert _convert_database_url_to_async(url) == url
