"""Order aggregate — the order status lifecycle and its payment coupling.

State Machine:
    PENDING → PROCESSING → SHIPPED → DELIVERED → COMPLETED
    PENDING/PROCESSING/SHIPPED/DELIVERED → CANCELLED | REFUNDED
    PENDING (payment pending) → EXPIRED

COMPLETED, CANCELLED, REFUNDED and EXPIRED are terminal. Every status change
goes through ``transition_to`` or ``expire``; moving to a status also
adjusts the payment status where the two are coupled (completing or shipping
an unpaid order marks it paid, cancelling it marks payment failed, refunding
marks it refunded).
"""

import json
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from storefront.domain import storefront
from storefront.errors import IneligibleOrderError, TransitionError
from storefront.order.events import OrderExpired, OrderPlaced, OrderStatusChanged


def as_utc(value):
    """Normalise a datetime to aware UTC. Naive values are taken to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    EXPIRED = "expired"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


TERMINAL_STATUSES = frozenset(
    {
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
        OrderStatus.EXPIRED,
    }
)

# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
        OrderStatus.EXPIRED,  # Only while payment is pending, see Order.can_expire
    },
    OrderStatus.PROCESSING: {
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.SHIPPED: {
        OrderStatus.DELIVERED,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.DELIVERED: {
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.COMPLETED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
    OrderStatus.EXPIRED: set(),  # Terminal
}


def allowed_transitions(status):
    """Statuses reachable from ``status`` (an OrderStatus or its value)."""
    return set(_VALID_TRANSITIONS.get(OrderStatus(status), set()))


def coupled_payment_status(target, payment_status):
    """Payment status an order ends up with after moving to ``target``."""
    target = OrderStatus(target)
    payment_status = PaymentStatus(payment_status)

    if target == OrderStatus.REFUNDED:
        return PaymentStatus.REFUNDED
    if payment_status != PaymentStatus.PENDING:
        return payment_status
    if target in (OrderStatus.COMPLETED, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        return PaymentStatus.PAID
    if target == OrderStatus.CANCELLED:
        return PaymentStatus.FAILED
    return payment_status


def generate_order_number(now=None):
    now = now or datetime.now(UTC)
    return f"ORD-{now:%Y%m%d}-{uuid4().hex[:8].upper()}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class OrderPricing:
    """Financial summary of an order, locked at checkout.

    Nothing after placement changes these amounts, expiration included.
    """

    subtotal = Float(default=0.0)
    discount = Float(default=0.0)
    tax = Float(default=0.0)
    shipping_fee = Float(default=0.0)
    grand_total = Float(default=0.0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    """A line item: a product, optionally a specific measurement of it, and a quantity."""

    product_id = Identifier(required=True)
    product_measurement_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(default=0.0, min_value=0.0)

    def snapshot(self):
        return {
            "product_id": str(self.product_id),
            "product_measurement_id": str(self.product_measurement_id) if self.product_measurement_id else None,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    customer_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    pricing = ValueObject(OrderPricing)
    items = HasMany(OrderItem)
    coupon_id = Identifier()
    created_at = DateTime()
    updated_at = DateTime()
    expired_at = DateTime()
    expiration_notified_at = DateTime()

    @invariant.post
    def expired_at_is_set_only_on_expired_orders(self):
        is_expired = self.status == OrderStatus.EXPIRED.value
        if is_expired != (self.expired_at is not None):
            raise ValidationError({"expired_at": ["expired_at must be set exactly when the order is expired"]})

    @invariant.post
    def expiration_notice_requires_expiry(self):
        if self.expiration_notified_at is not None and self.expired_at is None:
            raise ValidationError({"expiration_notified_at": ["Cannot record an expiration notice on an unexpired order"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id, items_data, pricing=None, coupon_id=None, order_number=None, created_at=None):
        """Place a new order, pending and unpaid.

        Args:
            customer_id: The customer placing the order.
            items_data: List of dicts with product_id, quantity, unit_price
                        and optionally product_measurement_id.
            pricing: Dict with subtotal, discount, tax, shipping_fee and
                     grand_total. Derived from the items when omitted.
            created_at: Placement time, stored as UTC; defaults to now.
        """
        now = as_utc(created_at) if created_at else datetime.now(UTC)

        if pricing is None:
            subtotal = sum(item["quantity"] * item.get("unit_price", 0.0) for item in items_data)
            pricing = {"subtotal": subtotal, "grand_total": subtotal}

        order = cls(
            order_number=order_number or generate_order_number(now),
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            pricing=OrderPricing(**pricing),
            items=[
                OrderItem(
                    product_id=item["product_id"],
                    product_measurement_id=item.get("product_measurement_id"),
                    quantity=item["quantity"],
                    unit_price=item.get("unit_price", 0.0),
                )
                for item in items_data
            ],
            coupon_id=coupon_id,
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=str(customer_id),
                grand_total=order.grand_total,
                placed_at=now,
            )
        )
        return order

    @property
    def grand_total(self):
        return self.pricing.grand_total if self.pricing else 0.0

    def items_snapshot(self):
        return [item.snapshot() for item in self.items]

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def transition_to(self, new_status, now=None):
        """Move the order to ``new_status``, coupling the payment status.

        Expiring is delegated to ``expire`` so that its stricter
        preconditions apply no matter how it is requested.
        """
        try:
            target = OrderStatus(new_status)
        except ValueError:
            raise TransitionError({"status": [f"Unknown order status: {new_status}"]}) from None

        if target == OrderStatus.EXPIRED:
            self.expire(now)
            return

        current = OrderStatus(self.status)
        if current in TERMINAL_STATUSES:
            raise TransitionError({"status": [f"Order {self.order_number} is {current.value} and can no longer change"]})
        if target not in _VALID_TRANSITIONS[current]:
            raise TransitionError({"status": [f"Cannot transition from {current.value} to {target.value}"]})

        now = now or datetime.now(UTC)
        previous_status = self.status
        previous_payment_status = self.payment_status

        with atomic_change(self):
            self.status = target.value
            self.payment_status = coupled_payment_status(target, self.payment_status).value
            self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                previous_status=previous_status,
                new_status=self.status,
                previous_payment_status=previous_payment_status,
                payment_status=self.payment_status,
                grand_total=self.grand_total,
                changed_at=now,
            )
        )

    def can_expire(self):
        return (
            self.status == OrderStatus.PENDING.value
            and self.payment_status == PaymentStatus.PENDING.value
            and self.expired_at is None
        )

    def expire(self, now=None):
        """Expire a pending, unpaid order.

        Raises IneligibleOrderError, leaving the order untouched, when the
        order has been paid, moved on, or already expired in the meantime.
        """
        if not self.can_expire():
            raise IneligibleOrderError(
                {
                    "status": [
                        f"Order {self.order_number} cannot expire "
                        f"(status={self.status}, payment_status={self.payment_status})"
                    ]
                }
            )

        now = now or datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.EXPIRED.value
            self.expired_at = now
            self.updated_at = now

        self.raise_(
            OrderExpired(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                grand_total=self.grand_total,
                coupon_id=str(self.coupon_id) if self.coupon_id else None,
                items=json.dumps(self.items_snapshot()),
                created_at=self.created_at,
                expired_at=now,
            )
        )

    def mark_expiration_notified(self, now=None):
        """Record that the expiration notice went out. Set at most once."""
        if self.status != OrderStatus.EXPIRED.value:
            raise ValidationError({"status": ["Only expired orders can be marked as notified"]})
        if self.expiration_notified_at is not None:
            raise ValidationError({"expiration_notified_at": ["Expiration notice already recorded"]})

        now = now or datetime.now(UTC)
        self.expiration_notified_at = now
        self.updated_at = now
