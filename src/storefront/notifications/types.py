"""Notification channel and type identifiers shared by channels and templates."""

from enum import Enum


class NotificationChannel(Enum):
    EMAIL = "Email"
    SMS = "SMS"


class NotificationType(Enum):
    ORDER_EXPIRED = "OrderExpired"
    ORDER_STATUS_UPDATE = "OrderStatusUpdate"
