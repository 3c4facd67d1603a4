"""Domain events raised by the Order aggregate.

Events are immutable facts dispatched after the unit of work that raised
them commits. Handlers in the notifications and projections packages react
to them; none of them can affect the state change that produced the event.
"""

from protean.fields import DateTime, Float, Identifier, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """A new order was placed and is awaiting payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    grand_total = Float(required=True)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderStatusChanged:
    """An administrator moved the order to a new status."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    previous_payment_status = String(required=True)
    payment_status = String(required=True)
    grand_total = Float()
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderExpired:
    """An unpaid order sat pending past the timeout and was expired.

    Carries a snapshot of the order as it was expired, so handlers never
    need to read mutable order state to know what was reversed.
    """

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    grand_total = Float(required=True)
    coupon_id = Identifier()
    items = Text(required=True)  # JSON: list of {product_id, product_measurement_id, quantity, unit_price}
    created_at = DateTime()
    expired_at = DateTime(required=True)
