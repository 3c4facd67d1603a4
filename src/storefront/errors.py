"""Domain errors raised by the storefront aggregates and handlers.

All errors are ``ValidationError`` subclasses so callers that already catch
Protean's validation failures keep working; the subclasses let the expiration
scanner tell an expected skip apart from a real failure.
"""

from protean.exceptions import ValidationError


class TransitionError(ValidationError):
    """An order status change is not permitted from the current state."""


class IneligibleOrderError(TransitionError):
    """The order no longer satisfies the expiration preconditions."""


class MissingInventoryTargetError(ValidationError):
    """A product or product measurement referenced by an order item no longer exists."""
