"""
Tests for checkout payload schemas.
"""

import uuid
from decimal import Decimal

import pytest

from src.core.exceptions import InvalidInputError
from src.schemas.checkout import CartPayload, CustomerForm


def _item(**overrides) -> dict:
    item = {"productId": str(uuid.uuid4()), "quantity": 1}
    item.update(overrides)
    return item


class TestCustomerForm:
    """Test suite for the checkout customer form."""

    def test_blank_fields_are_missing(self):
        """Test that empty strings count as not filled in."""
        form = CustomerForm(name="  ", email="", postalCode="")

        assert form.name is None
        assert form.email is None
        assert form.has_data is False

    def test_email_lower_cased(self):
        form = CustomerForm(email=" Jane@Example.COM ")

        assert form.email == "jane@example.com"
        assert form.has_data is True

    def test_invalid_email_rejected(self):
        with pytest.raises(ValueError):
            CustomerForm(email="not-an-email")

    def test_postal_code_alias(self):
        assert CustomerForm(postalCode="1000").postal_code == "1000"


class TestCartPayload:
    """Test suite for cart parsing."""

    def test_parse_camel_case_payload(self):
        """Test the storefront's camelCase payload."""
        # Arrange
        store_id = uuid.uuid4()
        data = {
            "items": [_item(quantity=2, price="9.99")],
            "paymentMethod": "cash",
            "total": "19.98",
            "storeId": str(store_id),
            "customer": {"name": "Jane"},
        }

        # Act
        cart = CartPayload.parse(data)

        # Assert
        assert cart.items[0].quantity == 2
        assert cart.items[0].price == Decimal("9.99")
        assert cart.payment_method == "cash"
        assert cart.total == Decimal("19.98")
        assert cart.store_id == store_id
        assert cart.customer.name == "Jane"

    def test_store_reference_from_metadata(self):
        store_id = uuid.uuid4()

        cart = CartPayload.parse(
            {"items": [_item()], "metadata": {"storeId": str(store_id), "storeSlug": "acme"}}
        )

        assert cart.store_id == store_id
        assert cart.store_slug == "acme"

    def test_invalid_store_id_in_metadata(self):
        with pytest.raises(InvalidInputError):
            CartPayload.parse({"items": [_item()], "metadata": {"storeId": "nope"}})

    @pytest.mark.parametrize(
        "data",
        [
            {"items": []},
            {"items": [_item(quantity=0)]},
            {"items": [_item(quantity=-3)]},
            {"items": [_item(quantity=1.5)]},
            {"items": [_item(quantity=True)]},
            {"items": [{"productId": "not-a-uuid", "quantity": 1}]},
            {"items": [_item()], "total": "-1"},
            {"items": [_item(quantity=2_147_483_648)]},
            {"items": [_item(quantity=10**12)]},
            {"items": [_item()], "total": "19.999"},
            {"items": [_item()], "total": "0.005"},
        ],
    )
    def test_invalid_payloads(self, data):
        """Test that malformed carts become InvalidInputError with details."""
        with pytest.raises(InvalidInputError) as exc_info:
            CartPayload.parse(data)

        assert exc_info.value.code == "INVALID_INPUT"
        assert exc_info.value.context["errors"]

    @pytest.mark.parametrize(
        "total,expected",
        [
            ("19.98", Decimal("19.98")),
            ("19.980", Decimal("19.98")),
            ("20", Decimal("20")),
            ("0.5", Decimal("0.5")),
        ],
    )
    def test_cent_totals_accepted(self, total, expected):
        """Test that totals expressible in whole cents pass unchanged."""
        cart = CartPayload.parse({"items": [_item()], "total": total})

        assert cart.total == expected

    def test_largest_quantity_accepted(self):
        cart = CartPayload.parse({"items": [_item(quantity=2_147_483_647)]})

        assert cart.items[0].quantity == 2_147_483_647

    @pytest.mark.parametrize(
        "metadata,expected",
        [
            ({"promoCode": "summer"}, "SUMMER"),
            ({"promoCode": "summer", "promoApplied": True}, "SUMMER"),
            ({"promoCode": "summer", "promoApplied": False}, None),
            ({"discountCode": " spring "}, "SPRING"),
            ({"promoCode": "  "}, None),
            ({}, None),
        ],
    )
    def test_discount_code(self, metadata, expected):
        cart = CartPayload.parse({"items": [_item()], "metadata": metadata})

        assert cart.discount_code == expected
