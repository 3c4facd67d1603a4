"""Status update notices — email and SMS when an administrator moves an order along.

Each of the template's channels is attempted independently and has its own
switch: an SMS failure never prevents the email and vice versa.
Expirations are announced by the expiration notice, not here.
"""

import structlog
from protean import handle

from storefront.config import status_update_emails_enabled, status_update_sms_enabled
from storefront.domain import storefront
from storefront.notifications.helpers import deliver, find_customer, order_context, recipient, render
from storefront.notifications.types import NotificationChannel, NotificationType
from storefront.order.events import OrderStatusChanged
from storefront.order.order import Order

logger = structlog.get_logger(__name__)

_SWITCHES = {
    NotificationChannel.EMAIL: status_update_emails_enabled,
    NotificationChannel.SMS: status_update_sms_enabled,
}


@storefront.event_handler(part_of=Order)
class OrderStatusNotifier:
    @handle(OrderStatusChanged)
    def on_order_status_changed(self, event: OrderStatusChanged) -> None:
        try:
            self._notify(event)
        except Exception as exc:
            logger.error(
                "Failed to send status update notice",
                order_id=str(event.order_id),
                error=str(exc),
                exc_info=True,
            )

    def _notify(self, event: OrderStatusChanged) -> None:
        customer = find_customer(event.customer_id)
        if customer is None:
            logger.warning(
                "Customer not found, skipping status update notice",
                order_id=str(event.order_id),
                customer_id=str(event.customer_id),
            )
            return

        channels, rendered = render(
            NotificationType.ORDER_STATUS_UPDATE,
            order_context(
                event.order_id,
                event.order_number,
                customer,
                previous_status=event.previous_status,
                new_status=event.new_status,
            ),
        )

        for channel in channels:
            if _SWITCHES[channel]():
                self._deliver(channel, event, customer, rendered)

    def _deliver(self, channel, event, customer, rendered) -> None:
        log = logger.bind(order_id=str(event.order_id), channel=channel.value, new_status=event.new_status)
        if not recipient(customer, channel):
            log.info("No recipient on file for channel, skipping")
            return

        try:
            result = deliver(channel, customer, rendered)
        except Exception as exc:
            log.error("Status update notice raised", error=str(exc), exc_info=True)
            return

        if result.ok:
            log.info("Status update notice sent", message_id=result.message_id)
        else:
            log.error("Status update notice failed", error=result.error)
