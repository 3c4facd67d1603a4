"""Order status update template — sent when an administrator moves an order along."""

from storefront.notifications.types import NotificationChannel, NotificationType

_STATUS_MESSAGES = {
    "processing": "We are processing your order.",
    "shipped": "Your order has been shipped and is on its way.",
    "delivered": "Your order has been delivered. Thank you for shopping with us!",
    "completed": "Your order is complete. Thank you for shopping with us!",
    "cancelled": "Your order has been cancelled. Please contact support for assistance.",
    "refunded": "Your order has been refunded.",
}


def describe_status(status: str) -> str:
    return _STATUS_MESSAGES.get(status, f"Your order status has been updated to {status.replace('_', ' ').capitalize()}.")


class OrderStatusUpdateTemplate:
    notification_type = NotificationType.ORDER_STATUS_UPDATE.value
    default_channels = [NotificationChannel.EMAIL.value, NotificationChannel.SMS.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        customer_name = context.get("customer_name") or "Customer"
        new_status = context.get("new_status", "")
        store_name = context.get("store_name", "our store")
        message = describe_status(new_status)
        return {
            "subject": f"Order #{order_number} Update: {new_status.replace('_', ' ').capitalize()}",
            "body": (
                f"Hello {customer_name},\n\n"
                f"{message}\n\n"
                f"Order: #{order_number}\n"
                f"View order details: {context.get('order_url', '')}\n\n"
                f"Thank you for shopping with {store_name}!"
            ),
            "sms": f"Dear {customer_name}, order #{order_number} update: {message}\nPowered by {store_name}.",
        }
