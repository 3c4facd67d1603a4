"""Shared helpers for the notification handlers.

A notice is sent by rendering the template registered for its type and
handing the result to each of the template's channels.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.config import frontend_url, store_name
from storefront.customer.customer import Customer
from storefront.notifications.channel import get_channel
from storefront.notifications.channel.port import DeliveryResult
from storefront.notifications.templates import get_template
from storefront.notifications.types import NotificationChannel, NotificationType


def find_customer(customer_id):
    """The customer with ``customer_id``, or None when it no longer exists."""
    if not customer_id:
        return None
    try:
        return current_domain.repository_for(Customer).get(customer_id)
    except ObjectNotFoundError:
        return None


def order_url(order_id) -> str:
    return f"{frontend_url()}/account/orders/{order_id}"


def order_context(order_id, order_number, customer, **extra) -> dict:
    return {
        "order_id": str(order_id),
        "order_number": order_number,
        "customer_name": customer.first_name if customer else None,
        "order_url": order_url(order_id),
        "store_name": store_name(),
        **extra,
    }


def render(notification_type: NotificationType, context: dict):
    """Render ``notification_type``; returns the template's channels and the content."""
    template = get_template(notification_type)
    return [NotificationChannel(c) for c in template.default_channels], template.render(context)


def recipient(customer, channel: NotificationChannel) -> str | None:
    return customer.email if channel == NotificationChannel.EMAIL else customer.phone


def deliver(channel: NotificationChannel, customer, rendered: dict) -> DeliveryResult:
    adapter = get_channel(channel)
    if channel == NotificationChannel.SMS:
        return adapter.send(to=customer.phone, body=rendered.get("sms") or rendered["body"])
    return adapter.send(
        to=customer.email,
        subject=rendered["subject"],
        body=rendered["body"],
        to_name=customer.name,
    )
