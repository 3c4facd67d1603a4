"""Expire a single order — command and handler.

One ExpireOrder command is one unit of work: the order flips to expired,
its items go back to stock and its coupon use is handed back, all committed
together. If anything fails before commit the whole unit is rolled back and
the order stays eligible for the next sweep. OrderExpired is dispatched by
the unit of work only after a successful commit.
"""

from collections import defaultdict
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.coupon.coupon import Coupon
from storefront.domain import storefront
from storefront.errors import IneligibleOrderError, MissingInventoryTargetError
from storefront.expiration.eligibility import is_eligible
from storefront.order.order import Order

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class ExpireOrder:
    order_id = Identifier(required=True)
    expired_at = DateTime()  # Optional: defaults to now
    cutoff = DateTime()  # Optional: re-check the creation-time condition


def planned_restocks(order):
    """Stock to return for ``order``, one entry per product/measurement pair."""
    quantities = defaultdict(int)
    for item in order.items:
        measurement_id = str(item.product_measurement_id) if item.product_measurement_id else None
        quantities[(str(item.product_id), measurement_id)] += item.quantity

    return [
        {"product_id": product_id, "product_measurement_id": measurement_id, "quantity": quantity}
        for (product_id, measurement_id), quantity in quantities.items()
    ]


@storefront.command_handler(part_of=Order)
class ExpireOrderHandler:
    @handle(ExpireOrder)
    def expire_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if command.cutoff and not is_eligible(order, command.cutoff):
            raise IneligibleOrderError({"order_id": [f"Order {order.order_number} is no longer eligible for expiration"]})

        order.expire(command.expired_at or datetime.now(UTC))
        reversal = reverse_inventory(order)
        repo.add(order)

        logger.info("Order expired", order_number=order.order_number, **reversal)
        return reversal


def reverse_inventory(order):
    """Hand back what an expired order held: its stock and its coupon use.

    Must run in the same unit of work that saves the expired order.
    """
    return {
        "order_id": str(order.id),
        "items_restocked": _restock(order),
        "coupon_released": _release_coupon(order),
    }


def _restock(order):
    """Return every item to stock. Each product is loaded and saved once."""
    product_repo = current_domain.repository_for(Product)

    by_product = defaultdict(list)
    for entry in planned_restocks(order):
        by_product[entry["product_id"]].append(entry)

    restocked = 0
    for product_id, entries in by_product.items():
        try:
            product = product_repo.get(product_id)
        except ObjectNotFoundError:
            logger.warning(
                "Product missing, skipping restock",
                order_id=str(order.id),
                product_id=product_id,
            )
            continue

        changed = False
        for entry in entries:
            try:
                product.restock(entry["quantity"], entry["product_measurement_id"])
            except MissingInventoryTargetError:
                logger.warning(
                    "Product measurement missing, skipping restock",
                    order_id=str(order.id),
                    product_id=product_id,
                    product_measurement_id=entry["product_measurement_id"],
                )
                continue
            changed = True
            restocked += 1

        if changed:
            product_repo.add(product)

    return restocked


def _release_coupon(order):
    if not order.coupon_id:
        return False

    coupon_repo = current_domain.repository_for(Coupon)
    try:
        coupon = coupon_repo.get(order.coupon_id)
    except ObjectNotFoundError:
        logger.warning(
            "Coupon missing, skipping usage release",
            order_id=str(order.id),
            coupon_id=str(order.coupon_id),
        )
        return False

    if not coupon.release():
        logger.info("Coupon usage already at zero", coupon_id=str(coupon.id), code=coupon.code)
        return False

    coupon_repo.add(coupon)
    return True
