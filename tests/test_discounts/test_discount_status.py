"""
Tests for derived discount code status.

The Python rule and the SQL predicate must agree; the SQL form is checked by
compiling it, the Python form against every branch of the rule order.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.dialects import postgresql

from src.database.models.discount_code import (
    DiscountCode,
    DiscountStatus,
    DiscountType,
    derive_discount_status,
    discount_status_clause,
    normalize_code,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _code(**overrides) -> DiscountCode:
    fields = {
        "id": uuid.uuid4(),
        "owner_id": uuid.uuid4(),
        "code": "SPRING10",
        "discount_type": DiscountType.PERCENTAGE,
        "discount_value": Decimal("10"),
        "max_redemptions": 5,
        "current_redemptions": 0,
        "valid_from": NOW - timedelta(days=1),
        "valid_until": NOW + timedelta(days=30),
        "is_active": True,
        "archived": False,
    }
    fields.update(overrides)
    return DiscountCode(**fields)


class TestDeriveDiscountStatus:
    """Test suite for the status rule order."""

    def test_active_code(self):
        """Test that a live code under its ceiling is active."""
        assert derive_discount_status(_code(), NOW) == DiscountStatus.ACTIVE

    def test_archived_wins_over_everything(self):
        """Test that archived codes report archived even when otherwise live."""
        assert derive_discount_status(_code(archived=True), NOW) == DiscountStatus.ARCHIVED

    def test_manually_deactivated(self):
        assert derive_discount_status(_code(is_active=False), NOW) == DiscountStatus.INACTIVE

    def test_not_started(self):
        code = _code(valid_from=NOW + timedelta(hours=1))

        assert derive_discount_status(code, NOW) == DiscountStatus.INACTIVE

    def test_expired(self):
        code = _code(valid_from=NOW - timedelta(days=10), valid_until=NOW - timedelta(seconds=1))

        assert derive_discount_status(code, NOW) == DiscountStatus.INACTIVE

    def test_open_ended_window(self):
        """Test that a code without an end date stays active."""
        assert derive_discount_status(_code(valid_until=None), NOW) == DiscountStatus.ACTIVE

    def test_ceiling_reached_is_inactive_even_if_flag_still_on(self):
        """Test that the ceiling alone makes a code inactive."""
        code = _code(current_redemptions=5, max_redemptions=5, is_active=True)

        assert derive_discount_status(code, NOW) == DiscountStatus.INACTIVE

    def test_naive_datetimes_treated_as_utc(self):
        """Test that naive timestamps from the database compare as UTC."""
        code = _code(valid_from=datetime(2026, 10, 1), valid_until=datetime(2026, 11, 1))

        assert derive_discount_status(code, NOW) == DiscountStatus.ACTIVE

    def test_status_property_uses_current_time(self):
        code = _code(valid_from=datetime.now(timezone.utc) - timedelta(days=1))

        assert code.status == DiscountStatus.ACTIVE


class TestDiscountStatusClause:
    """Test suite for the SQL form of the rule."""

    @staticmethod
    def _sql(status: DiscountStatus) -> str:
        clause = discount_status_clause(status, NOW)
        return str(clause.compile(dialect=postgresql.dialect())).lower()

    def test_archived_clause(self):
        assert self._sql(DiscountStatus.ARCHIVED) == "discount_codes.archived is true"

    def test_active_clause_checks_every_rule(self):
        """Test that the active predicate covers flag, window and ceiling."""
        sql = self._sql(DiscountStatus.ACTIVE)

        assert "discount_codes.archived is false" in sql
        assert "discount_codes.is_active is true" in sql
        assert "discount_codes.valid_from <=" in sql
        assert "discount_codes.valid_until is null" in sql
        assert "discount_codes.current_redemptions < discount_codes.max_redemptions" in sql

    def test_inactive_clause_excludes_archived(self):
        """Test that inactive means not archived and not active."""
        sql = self._sql(DiscountStatus.INACTIVE)

        assert sql.startswith("discount_codes.archived is false and not")


class TestNormalizeCode:
    """Test suite for code normalization."""

    @pytest.mark.parametrize("raw", ["spring10", "  Spring10 ", "SPRING10"])
    def test_trim_and_upper_case(self, raw: str):
        assert normalize_code(raw) == "SPRING10"
