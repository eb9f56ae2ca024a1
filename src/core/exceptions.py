"""
Checkout pipeline exception hierarchy.

Every failure surfaced by the pipeline derives from CheckoutError and carries a
stable machine-readable ``code`` plus a ``context`` dict whose keys mirror the
structured log fields emitted alongside it.
"""

from typing import Any, Optional


class CheckoutError(Exception):
    """Base exception for checkout pipeline errors."""

    code = "CHECKOUT_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, **context: Any):
        super().__init__(message)
        if code is not None:
            self.code = code
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for the calling layer."""
        return {
            "code": self.code,
            "message": str(self),
            "context": {key: _stringify(value) for key, value in self.context.items()},
        }


class InvalidInputError(CheckoutError):
    """Raised when a cart, customer form or argument is malformed."""

    code = "INVALID_INPUT"


class InsufficientStockError(CheckoutError):
    """Raised when a line item asks for more units than are in stock."""

    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: Any, requested: int, available: Optional[int]):
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available if available is not None else 'unknown'}",
            product_id=product_id,
            requested=requested,
            available=available,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class NotFoundError(CheckoutError):
    """Raised when a discount code, store, order or invoice does not exist."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any, **context: Any):
        super().__init__(
            f"{resource} {identifier} not found",
            resource=resource,
            identifier=identifier,
            **context,
        )
        self.resource = resource
        self.identifier = identifier


class DiscountCodeExhaustedError(CheckoutError):
    """Raised when a discount code has already reached its redemption ceiling."""

    code = "DISCOUNT_EXHAUSTED"


class AllocationExhaustedError(CheckoutError):
    """Raised when no unused document identifier was found within the retry bound."""

    code = "ALLOCATION_EXHAUSTED"


class IdentityResolutionError(CheckoutError):
    """Raised when a checkout cannot be attributed to a user."""

    code = "IDENTITY_RESOLUTION_FAILED"


class InvalidStatusTransitionError(CheckoutError):
    """Raised when an order or invoice status change is not permitted."""

    code = "INVALID_STATUS_TRANSITION"


def _stringify(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
