"""Order expired template — sent when an unpaid order is expired."""

from storefront.notifications.types import NotificationChannel, NotificationType


class OrderExpiredTemplate:
    notification_type = NotificationType.ORDER_EXPIRED.value
    default_channels = [NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        customer_name = context.get("customer_name") or "there"
        order_url = context.get("order_url", "")
        store_name = context.get("store_name", "our store")
        return {
            "subject": f"Your Order #{order_number} Has Expired",
            "body": (
                f"Hello {customer_name},\n\n"
                f"We noticed that your order #{order_number} has been pending payment for some time.\n"
                "The order has now expired and the items have been returned to our inventory.\n"
                "If you still wish to purchase these items, please place a new order.\n\n"
                f"View order details: {order_url}\n\n"
                f"Thank you for shopping with {store_name}!"
            ),
        }
