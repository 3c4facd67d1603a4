"""Channel adapters, one shared instance per channel.

In-memory fakes unless ``EMAIL_CHANNEL=brevo`` or ``SMS_CHANNEL=termii``
selects the HTTP adapter.
"""

import os

from storefront.notifications.types import NotificationChannel

_adapters: dict[NotificationChannel, object] = {}


def _email_adapter():
    if os.getenv("EMAIL_CHANNEL", "fake").lower() == "brevo":
        from storefront.notifications.channel.brevo_email import BrevoEmailAdapter

        return BrevoEmailAdapter.from_env()

    from storefront.notifications.channel.fake import FakeEmailAdapter

    return FakeEmailAdapter()


def _sms_adapter():
    if os.getenv("SMS_CHANNEL", "fake").lower() == "termii":
        from storefront.notifications.channel.termii_sms import TermiiSMSAdapter

        return TermiiSMSAdapter.from_env()

    from storefront.notifications.channel.fake import FakeSMSAdapter

    return FakeSMSAdapter()


_BUILDERS = {
    NotificationChannel.EMAIL: _email_adapter,
    NotificationChannel.SMS: _sms_adapter,
}


def get_channel(channel: NotificationChannel | str):
    """The adapter for ``channel`` ("Email" or "SMS"), built on first use."""
    try:
        channel = NotificationChannel(channel)
    except ValueError:
        raise ValueError(f"Unknown channel type: {channel}") from None

    if channel not in _adapters:
        _adapters[channel] = _BUILDERS[channel]()
    return _adapters[channel]


def reset_channels():
    _adapters.clear()
