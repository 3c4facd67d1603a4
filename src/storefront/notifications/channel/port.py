"""Notification channel ports — what every email and SMS adapter shares.

Adapters only talk to their provider. The ports own the rest:

* the sender: the store's from-address and name for email, the registered
  sender id for SMS, read from settings unless given explicitly,
* recipients: SMS numbers reach adapters in international form,
* the outcome: every send returns a DeliveryResult; a missing recipient is
  a failed delivery, never an exception.
"""

import html
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from storefront.config import get_setting

DEFAULT_COUNTRY_CODE = "234"


def format_phone_number(phone: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """Normalise a local or international number to digits with a country code.

    >>> format_phone_number("0803 123 4567")
    '2348031234567'
    """
    digits = re.sub(r"\D", "", phone or "")
    if not digits or digits.startswith(country_code):
        return digits
    if digits.startswith("0"):
        return country_code + digits[1:]
    return country_code + digits


def plain_to_html(text: str) -> str:
    paragraphs = [html.escape(p).replace("\n", "<br>") for p in text.split("\n\n")]
    return "".join(f"<p>{p}</p>" for p in paragraphs)


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one send, as reported by the provider."""

    status: str  # "sent" or "failed"
    message_id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "sent"

    @classmethod
    def sent(cls, message_id: str | None = None) -> "DeliveryResult":
        return cls(status="sent", message_id=message_id)

    @classmethod
    def failed(cls, error: str) -> "DeliveryResult":
        return cls(status="failed", error=error)


@dataclass(frozen=True)
class EmailMessage:
    sender_email: str
    sender_name: str
    to: str
    to_name: str
    subject: str
    text: str
    html: str


@dataclass(frozen=True)
class SMSMessage:
    sender_id: str
    to: str  # international form, digits only
    body: str


class EmailPort(ABC):
    def __init__(self, sender_email: str | None = None, sender_name: str | None = None) -> None:
        self.sender_email = sender_email or get_setting("MAIL_FROM_ADDRESS")
        self.sender_name = sender_name or get_setting("MAIL_FROM_NAME")

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
        to_name: str | None = None,
    ) -> DeliveryResult:
        if not to:
            return DeliveryResult.failed("No recipient email address")

        return self.deliver(
            EmailMessage(
                sender_email=self.sender_email,
                sender_name=self.sender_name,
                to=to,
                to_name=to_name or to,
                subject=subject,
                text=body,
                html=html_body or plain_to_html(body),
            )
        )

    @abstractmethod
    def deliver(self, message: EmailMessage) -> DeliveryResult:
        """Hand ``message`` to the provider."""


class SMSPort(ABC):
    def __init__(self, sender_id: str | None = None, country_code: str = DEFAULT_COUNTRY_CODE) -> None:
        self.sender_id = sender_id or get_setting("TERMII_SENDER_ID")
        self.country_code = country_code

    def send(self, to: str, body: str) -> DeliveryResult:
        number = format_phone_number(to, self.country_code)
        if not number:
            return DeliveryResult.failed("No recipient phone number")

        return self.deliver(SMSMessage(sender_id=self.sender_id, to=number, body=body))

    @abstractmethod
    def deliver(self, message: SMSMessage) -> DeliveryResult:
        """Hand ``message`` to the provider."""
