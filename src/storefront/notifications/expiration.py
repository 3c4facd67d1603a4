"""Expiration notice — emails the customer once their unpaid order has expired.

The notice goes out at most once per order: the order's
``expiration_notified_at`` marker is checked before sending and set only
after a channel confirms the send (the expired-order template goes by
email). A failed send leaves the marker unset. Nothing here can undo or
fail the expiration itself.
"""

import structlog
from protean import handle
from protean.utils.globals import current_domain

from storefront.config import expiration_notifications_enabled
from storefront.domain import storefront
from storefront.notifications.helpers import deliver, find_customer, order_context, recipient, render
from storefront.notifications.types import NotificationType
from storefront.order.events import OrderExpired
from storefront.order.order import Order

logger = structlog.get_logger(__name__)


@storefront.event_handler(part_of=Order)
class OrderExpirationNotifier:
    @handle(OrderExpired)
    def on_order_expired(self, event: OrderExpired) -> None:
        if not expiration_notifications_enabled():
            logger.info("Expiration notifications disabled, skipping", order_id=str(event.order_id))
            return

        try:
            self._notify(event)
        except Exception as exc:
            logger.error(
                "Failed to send order expiration notification",
                order_id=str(event.order_id),
                error=str(exc),
                exc_info=True,
            )

    def _notify(self, event: OrderExpired) -> None:
        repo = current_domain.repository_for(Order)
        order = repo.get(event.order_id)

        if order.expiration_notified_at is not None:
            logger.info("Expiration notice already sent", order_id=str(order.id))
            return

        customer = find_customer(event.customer_id)
        if customer is None:
            logger.warning(
                "Customer not found for expired order, skipping notification",
                order_id=str(order.id),
                customer_id=str(event.customer_id),
            )
            return

        channels, rendered = render(NotificationType.ORDER_EXPIRED, order_context(order.id, order.order_number, customer))

        delivered = []
        for channel in channels:
            if not recipient(customer, channel):
                logger.warning("No recipient on file, skipping", order_id=str(order.id), channel=channel.value)
                continue
            result = deliver(channel, customer, rendered)
            if result.ok:
                delivered.append(result.message_id)
            else:
                logger.error(
                    "Expiration notice was not delivered",
                    order_id=str(order.id),
                    channel=channel.value,
                    error=result.error,
                )

        if not delivered:
            return

        order.mark_expiration_notified()
        repo.add(order)
        logger.info(
            "Expiration notice sent",
            order_id=str(order.id),
            order_number=order.order_number,
            message_ids=delivered,
        )
