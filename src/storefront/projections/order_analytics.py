"""Order analytics projections — daily and per-customer order counters.

DailyOrderAnalytics is keyed by date (YYYY-MM-DD) and counts orders placed,
completed and expired, with their values. CustomerOrderAnalytics is keyed
by customer and tracks abandoned (expired) versus completed orders and the
resulting conversion rate.

Expiration counters are incremented once per order: the ExpiredOrderRecord
is written after the counters, and a redelivered OrderExpired whose record
already exists is ignored. A failure part way leaves no record, so a
redelivered event is counted again rather than lost. Failures are logged
and never propagate back to the expiration that triggered them.

Counters are read, incremented and saved. This relies on the projector
handling the Order stream one event at a time, which holds for sync
processing and for the single subscription the async engine runs per
projector; parallel consumers of the same projector would lose updates.
"""

import structlog
from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.config import expiration_analytics_enabled
from storefront.domain import storefront
from storefront.order.events import OrderExpired, OrderPlaced, OrderStatusChanged
from storefront.order.order import Order, OrderStatus, as_utc

logger = structlog.get_logger(__name__)


@storefront.projection
class DailyOrderAnalytics:
    date = String(identifier=True, required=True, max_length=10)  # YYYY-MM-DD
    total_orders_count = Integer(default=0)
    total_orders_value = Float(default=0.0)
    completed_orders_count = Integer(default=0)
    completed_orders_value = Float(default=0.0)
    expired_orders_count = Integer(default=0)
    expired_orders_value = Float(default=0.0)


@storefront.projection
class CustomerOrderAnalytics:
    customer_id = String(identifier=True, required=True, max_length=50)
    abandoned_orders_count = Integer(default=0)
    abandoned_orders_value = Float(default=0.0)
    completed_orders_count = Integer(default=0)
    completed_orders_value = Float(default=0.0)
    conversion_rate = Float(default=0.0)  # Percentage of decided orders that completed

    def recalculate_conversion_rate(self):
        completed = self.completed_orders_count or 0
        decided = completed + (self.abandoned_orders_count or 0)
        self.conversion_rate = round(completed / decided * 100, 2) if decided else 0.0


@storefront.projection
class ExpiredOrderRecord:
    """One row per expired order. Also the source for the expired orders report."""

    order_id = String(identifier=True, required=True, max_length=50)
    order_number = String(max_length=50)
    customer_id = Identifier()
    grand_total = Float(default=0.0)
    coupon_id = Identifier()
    items = Text()  # JSON: list of {product_id, product_measurement_id, quantity, unit_price}
    created_at = DateTime()
    expired_at = DateTime()
    expired_on = String(max_length=10)  # YYYY-MM-DD


def _date_key(value):
    return as_utc(value).date().isoformat()


def _get_or_create_daily(date_key):
    repo = current_domain.repository_for(DailyOrderAnalytics)
    try:
        return repo.get(date_key)
    except ObjectNotFoundError:
        return DailyOrderAnalytics(
            date=date_key,
            total_orders_count=0,
            total_orders_value=0.0,
            completed_orders_count=0,
            completed_orders_value=0.0,
            expired_orders_count=0,
            expired_orders_value=0.0,
        )


def _get_or_create_customer(customer_id):
    repo = current_domain.repository_for(CustomerOrderAnalytics)
    try:
        return repo.get(customer_id)
    except ObjectNotFoundError:
        return CustomerOrderAnalytics(
            customer_id=customer_id,
            abandoned_orders_count=0,
            abandoned_orders_value=0.0,
            completed_orders_count=0,
            completed_orders_value=0.0,
            conversion_rate=0.0,
        )


def _already_recorded(order_id):
    try:
        current_domain.repository_for(ExpiredOrderRecord).get(order_id)
        return True
    except ObjectNotFoundError:
        return False


@storefront.projector(projector_for=DailyOrderAnalytics, aggregates=[Order])
class OrderAnalyticsProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        try:
            record = _get_or_create_daily(_date_key(event.placed_at))
            record.total_orders_count = (record.total_orders_count or 0) + 1
            record.total_orders_value = (record.total_orders_value or 0.0) + (event.grand_total or 0.0)
            current_domain.repository_for(DailyOrderAnalytics).add(record)
        except Exception as exc:
            logger.error("Failed to record placed order", order_id=str(event.order_id), error=str(exc), exc_info=True)

    @on(OrderStatusChanged)
    def on_order_status_changed(self, event):
        if event.new_status != OrderStatus.COMPLETED.value:
            return

        try:
            value = event.grand_total or 0.0

            daily = _get_or_create_daily(_date_key(event.changed_at))
            daily.completed_orders_count = (daily.completed_orders_count or 0) + 1
            daily.completed_orders_value = (daily.completed_orders_value or 0.0) + value
            current_domain.repository_for(DailyOrderAnalytics).add(daily)

            customer = _get_or_create_customer(str(event.customer_id))
            customer.completed_orders_count = (customer.completed_orders_count or 0) + 1
            customer.completed_orders_value = (customer.completed_orders_value or 0.0) + value
            customer.recalculate_conversion_rate()
            current_domain.repository_for(CustomerOrderAnalytics).add(customer)
        except Exception as exc:
            logger.error("Failed to record completed order", order_id=str(event.order_id), error=str(exc), exc_info=True)

    @on(OrderExpired)
    def on_order_expired(self, event):
        if not expiration_analytics_enabled():
            logger.info("Expiration analytics disabled, skipping", order_id=str(event.order_id))
            return

        try:
            self._record_expiration(event)
        except Exception as exc:
            logger.error("Failed to record expired order", order_id=str(event.order_id), error=str(exc), exc_info=True)

    def _record_expiration(self, event):
        order_id = str(event.order_id)
        if _already_recorded(order_id):
            logger.info("Expired order already recorded", order_id=order_id)
            return

        value = event.grand_total or 0.0
        expired_on = _date_key(event.expired_at)

        daily = _get_or_create_daily(expired_on)
        daily.expired_orders_count = (daily.expired_orders_count or 0) + 1
        daily.expired_orders_value = (daily.expired_orders_value or 0.0) + value
        current_domain.repository_for(DailyOrderAnalytics).add(daily)

        customer = _get_or_create_customer(str(event.customer_id))
        customer.abandoned_orders_count = (customer.abandoned_orders_count or 0) + 1
        customer.abandoned_orders_value = (customer.abandoned_orders_value or 0.0) + value
        customer.recalculate_conversion_rate()
        current_domain.repository_for(CustomerOrderAnalytics).add(customer)

        current_domain.repository_for(ExpiredOrderRecord).add(
            ExpiredOrderRecord(
                order_id=order_id,
                order_number=event.order_number,
                customer_id=str(event.customer_id),
                grand_total=value,
                coupon_id=event.coupon_id,
                items=event.items,
                created_at=event.created_at,
                expired_at=event.expired_at,
                expired_on=expired_on,
            )
        )

        logger.info("Expired order recorded in analytics", order_id=order_id, date=expired_on, value=value)
