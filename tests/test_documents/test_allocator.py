"""
Tests for invoice number and share token allocation.
"""

import asyncio
import re
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from src.core.exceptions import AllocationExhaustedError
from src.services.documents.allocator import (
    DocumentNumberAllocator,
    generate_invoice_number,
    generate_share_token,
)

INVOICE_NUMBER_PATTERN = re.compile(r"^INV-\d{8}-[A-Z0-9]{6}$")


class RegistryAllocator(DocumentNumberAllocator):
    """
    Allocator backed by an in-memory registry instead of the invoices table.

    Checking a value also claims it, the way the unique index claims a value
    on insert, so concurrent allocations cannot both win the same value.
    """

    def __init__(self, max_attempts: int = 10):
        super().__init__(max_attempts=max_attempts)
        self.registry: set[str] = set()

    async def _is_taken(self, session, column, value):
        await asyncio.sleep(0)
        if value in self.registry:
            return True
        self.registry.add(value)
        return False


class TestGenerators:
    """Test suite for candidate generation."""

    def test_invoice_number_format(self):
        """Test the INV-YYYYMMDD-XXXXXX format."""
        assert INVOICE_NUMBER_PATTERN.match(generate_invoice_number())

    def test_invoice_number_uses_allocation_date(self):
        """Test that the date segment is the allocation instant."""
        now = datetime(2026, 2, 3, 23, 59, tzinfo=timezone.utc)

        assert generate_invoice_number(now).startswith("INV-20260203-")

    def test_share_token_is_256_bit_hex(self):
        """Test that share tokens are 64 hex characters."""
        token = generate_share_token()

        assert re.fullmatch(r"[0-9a-f]{64}", token)


class TestAllocation:
    """Test suite for collision-checked allocation."""

    @pytest.mark.asyncio
    async def test_allocate_invoice_number_checks_database(
        self, mock_session: AsyncMock, result_factory
    ):
        """Test that a free candidate is returned after one lookup."""
        # Arrange
        mock_session.execute.return_value = result_factory(scalar=None)
        allocator = DocumentNumberAllocator(max_attempts=10)

        # Act
        number = await allocator.allocate_invoice_number(mock_session)

        # Assert
        assert INVOICE_NUMBER_PATTERN.match(number)
        mock_session.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_collision_retries_with_new_candidate(
        self, mock_session: AsyncMock, result_factory
    ):
        """Test that a taken candidate triggers another attempt."""
        # Arrange
        taken = result_factory(scalar="existing-invoice-id")
        free = result_factory(scalar=None)
        mock_session.execute.side_effect = [taken, taken, free]
        allocator = DocumentNumberAllocator(max_attempts=10)

        # Act
        token = await allocator.allocate_share_token(mock_session)

        # Assert
        assert len(token) == 64
        assert mock_session.execute.await_count == 3

    @pytest.mark.asyncio
    async def test_exhaustion_after_max_attempts(
        self, mock_session: AsyncMock, result_factory
    ):
        """Test that AllocationExhaustedError is raised after the bound."""
        # Arrange
        mock_session.execute.return_value = result_factory(scalar="existing-invoice-id")
        allocator = DocumentNumberAllocator(max_attempts=10)

        # Act
        with pytest.raises(AllocationExhaustedError) as exc_info:
            await allocator.allocate_invoice_number(mock_session)

        # Assert
        assert mock_session.execute.await_count == 10
        assert exc_info.value.code == "ALLOCATION_EXHAUSTED"
        assert exc_info.value.context["kind"] == "invoice_number"

    @pytest.mark.asyncio
    async def test_forced_collision_on_generator(self):
        """Test retry when the generator repeats an existing number."""
        # Arrange
        allocator = RegistryAllocator(max_attempts=3)
        today = datetime.now(timezone.utc)
        allocator.registry.add(f"INV-{today:%Y%m%d}-AAAAAA")

        # Act
        with patch(
            "src.services.documents.allocator.generate_random_code",
            side_effect=["AAAAAA", "BBBBBB"],
        ):
            number = await allocator.allocate_invoice_number(None)

        # Assert
        assert number.endswith("-BBBBBB")

    def test_default_max_attempts_from_settings(self):
        assert DocumentNumberAllocator().max_attempts == 10


class TestUniquenessUnderLoad:
    """Test suite for uniqueness across many concurrent allocations."""

    @pytest.mark.asyncio
    async def test_ten_thousand_concurrent_allocations_are_unique(self):
        """Test that 10,000 concurrent allocations never repeat a value."""
        # Arrange
        allocator = RegistryAllocator()

        async def allocate_pair():
            number = await allocator.allocate_invoice_number(None)
            token = await allocator.allocate_share_token(None)
            return number, token

        # Act
        pairs = await asyncio.gather(*(allocate_pair() for _ in range(10_000)))

        # Assert
        numbers = [number for number, _ in pairs]
        tokens = [token for _, token in pairs]
        assert len(set(numbers)) == 10_000
        assert len(set(tokens)) == 10_000
