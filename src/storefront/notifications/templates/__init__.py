"""Template registry — which template renders each notification type."""

from storefront.notifications.templates.order_expired import OrderExpiredTemplate
from storefront.notifications.templates.order_status_update import OrderStatusUpdateTemplate
from storefront.notifications.types import NotificationType

TEMPLATE_REGISTRY = {
    NotificationType.ORDER_EXPIRED: OrderExpiredTemplate,
    NotificationType.ORDER_STATUS_UPDATE: OrderStatusUpdateTemplate,
}


def get_template(notification_type: NotificationType | str):
    try:
        return TEMPLATE_REGISTRY[NotificationType(notification_type)]
    except ValueError:
        raise ValueError(f"No template registered for notification type: {notification_type}") from None
