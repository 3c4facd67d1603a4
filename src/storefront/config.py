"""Application settings for order expiration, notifications and analytics.

Each setting resolves from the environment first, then from the ``[custom]``
table of ``domain.toml``, then from the built-in default below.
"""

import os
from enum import Enum

from storefront.domain import storefront

DEFAULTS = {
    "ORDER_EXPIRATION_HOURS": 24.0,
    "ORDER_EXPIRATION_FAST_SWEEP_HOURS": 0.5,
    "SEND_ORDER_EXPIRATION_NOTIFICATIONS": True,
    "RECORD_ORDER_EXPIRATION_ANALYTICS": True,
    "ORDER_STATUS_UPDATE_EMAILS": True,
    "ORDER_STATUS_UPDATE_SMS": True,
    "FRONTEND_URL": "http://localhost:3000",
    "STORE_NAME": "M-Mart Plus",
    "MAIL_FROM_ADDRESS": "noreply@mmart.com",
    "MAIL_FROM_NAME": "M-Mart+ Support",
    "TERMII_SENDER_ID": "N-Alert",
}

_TRUTHY = {"1", "true", "yes", "on"}


class Sweep(Enum):
    """Scheduled sweep presets: a frequent short-timeout pass and a daily one."""

    FAST = "fast"
    DAILY = "daily"


def get_setting(key: str):
    """Resolve a setting: environment, then domain ``[custom]`` config, then default."""
    env_value = os.getenv(key)
    if env_value is not None and env_value != "":
        return env_value

    custom = storefront.config.get("custom") or {}
    if key in custom:
        return custom[key]

    return DEFAULTS.get(key)


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY


def expiration_hours(sweep: Sweep | str | None = None) -> float:
    """Timeout in hours after which an unpaid order is expired.

    ``sweep`` selects a preset; without one the daily timeout is used.
    """
    sweep = Sweep(sweep) if sweep is not None else Sweep.DAILY
    key = "ORDER_EXPIRATION_FAST_SWEEP_HOURS" if sweep == Sweep.FAST else "ORDER_EXPIRATION_HOURS"
    return float(get_setting(key))


def expiration_notifications_enabled() -> bool:
    return _as_bool(get_setting("SEND_ORDER_EXPIRATION_NOTIFICATIONS"))


def expiration_analytics_enabled() -> bool:
    return _as_bool(get_setting("RECORD_ORDER_EXPIRATION_ANALYTICS"))


def frontend_url() -> str:
    return str(get_setting("FRONTEND_URL")).rstrip("/")


def store_name() -> str:
    return str(get_setting("STORE_NAME"))


def status_update_emails_enabled() -> bool:
    return _as_bool(get_setting("ORDER_STATUS_UPDATE_EMAILS"))


def status_update_sms_enabled() -> bool:
    return _as_bool(get_setting("ORDER_STATUS_UPDATE_SMS"))
