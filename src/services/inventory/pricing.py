"""
Cart pricing helpers.

Money is handled as Decimal and quantized to cents with ROUND_HALF_UP, the
rounding the storefront shows customers.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from src.core.exceptions import InvalidInputError

CENTS = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """
    Convert a number or numeric string to a Decimal quantized to cents.

    Raises:
        InvalidInputError: If the value is not a finite number
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise InvalidInputError(f"Invalid monetary amount: {value!r}", value=value) from e

    if not amount.is_finite():
        raise InvalidInputError(f"Invalid monetary amount: {value!r}", value=value)

    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def resolve_line_price(
    product_id: Any,
    catalog_price: Decimal,
    explicit_price: Optional[Any] = None,
) -> Decimal:
    """
    Resolve the unit price charged for one line item.

    An explicit per-line price wins over the catalog price.

    Args:
        product_id: Product the line refers to (for error context)
        catalog_price: Current catalog price of the product
        explicit_price: Price supplied by the cart, if any

    Returns:
        Unit price quantized to cents

    Raises:
        InvalidInputError: If the resolved price is negative or not finite
    """
    raw = explicit_price if explicit_price is not None else catalog_price
    try:
        price = to_money(raw)
    except InvalidInputError as e:
        raise InvalidInputError(
            f"Invalid price for product {product_id}",
            product_id=product_id,
            price=raw,
        ) from e

    if price < 0:
        raise InvalidInputError(
            f"Negative price for product {product_id}",
            product_id=product_id,
            price=price,
        )
    return price


def compute_subtotal(lines: Iterable[tuple[Decimal, int]]) -> Decimal:
    """Sum ``unit_price * quantity`` over ``(unit_price, quantity)`` pairs."""
    total = sum((price * quantity for price, quantity in lines), Decimal("0"))
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)
