"""Which orders the expiration sweep may touch.

An order is eligible when it is pending, its payment is pending, it has
never been expired, and it was placed strictly before the cutoff
(``now - hours``). Orders placed exactly at the cutoff are not eligible.
"""

import math
from datetime import UTC, datetime, timedelta

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.order.order import Order, OrderStatus, PaymentStatus, as_utc

__all__ = ["as_utc", "cutoff_for", "find_eligible_orders", "is_eligible"]

_PAGE_SIZE = 100


def cutoff_for(hours, now=None):
    """The creation time before which pending orders are considered stale."""
    if hours is None or not math.isfinite(hours) or hours < 0:
        raise ValidationError({"hours": ["Expiration timeout must be a finite number of hours, zero or more"]})
    now = as_utc(now) if now else datetime.now(UTC)
    return now - timedelta(hours=hours)


def is_eligible(order, cutoff):
    created_at = as_utc(order.created_at)
    return (
        order.status == OrderStatus.PENDING.value
        and order.payment_status == PaymentStatus.PENDING.value
        and order.expired_at is None
        and created_at is not None
        and created_at < as_utc(cutoff)
    )


def find_eligible_orders(cutoff):
    """All orders eligible for expiration at ``cutoff``, oldest first."""
    cutoff = as_utc(cutoff)
    query = current_domain.repository_for(Order)._dao.query.filter(
        status=OrderStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        created_at__lt=cutoff,
    )

    eligible = []
    offset = 0
    while True:
        page = query.order_by("created_at").offset(offset).limit(_PAGE_SIZE).all()
        eligible.extend(order for order in page.items if is_eligible(order, cutoff))
        offset += _PAGE_SIZE
        if offset >= page.total:
            break

    return eligible
