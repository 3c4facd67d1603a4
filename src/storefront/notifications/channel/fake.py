"""In-memory channel adapters for development and tests.

Both record what they were asked to deliver and can be told to fail, so
tests can assert on delivered messages and exercise failure handling.
"""

from uuid import uuid4

from storefront.notifications.channel.port import DeliveryResult, EmailMessage, EmailPort, SMSMessage, SMSPort


class _Outbox:
    prefix = "msg"

    def __init__(self):
        self.failure_reason: str | None = None

    def fail_with(self, reason: str = "Delivery failed") -> None:
        self.failure_reason = reason

    def recover(self) -> None:
        self.failure_reason = None

    def _record(self, outbox: list, message) -> DeliveryResult:
        if self.failure_reason is not None:
            return DeliveryResult.failed(self.failure_reason)
        outbox.append(message)
        return DeliveryResult.sent(f"{self.prefix}-{uuid4().hex[:12]}")


class FakeEmailAdapter(_Outbox, EmailPort):
    prefix = "email"

    def __init__(self, sender_email: str | None = None, sender_name: str | None = None):
        _Outbox.__init__(self)
        EmailPort.__init__(self, sender_email, sender_name)
        self.sent_emails: list[EmailMessage] = []

    def deliver(self, message: EmailMessage) -> DeliveryResult:
        return self._record(self.sent_emails, message)


class FakeSMSAdapter(_Outbox, SMSPort):
    prefix = "sms"

    def __init__(self, sender_id: str | None = None):
        _Outbox.__init__(self)
        SMSPort.__init__(self, sender_id)
        self.sent_messages: list[SMSMessage] = []

    def deliver(self, message: SMSMessage) -> DeliveryResult:
        return self._record(self.sent_messages, message)
