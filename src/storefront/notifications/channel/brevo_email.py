"""Brevo email adapter — transactional email over the Brevo v3 HTTP API.

Configured from the environment: ``BREVO_API_KEY`` (required) and
``BREVO_API_URL``. The sender comes from the ``MAIL_FROM_ADDRESS`` and
``MAIL_FROM_NAME`` settings.
"""

import os

import requests
import structlog

from storefront.notifications.channel.port import DeliveryResult, EmailMessage, EmailPort

logger = structlog.get_logger(__name__)

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"


class BrevoEmailAdapter(EmailPort):
    def __init__(
        self,
        api_key: str,
        sender_email: str | None = None,
        sender_name: str | None = None,
        api_url: str = BREVO_API_URL,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(sender_email, sender_name)
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls):
        api_key = os.getenv("BREVO_API_KEY")
        if not api_key:
            raise ValueError("BREVO_API_KEY must be set to use the Brevo email channel")
        return cls(api_key=api_key, api_url=os.getenv("BREVO_API_URL", BREVO_API_URL))

    @staticmethod
    def build_payload(message: EmailMessage) -> dict:
        return {
            "sender": {"name": message.sender_name, "email": message.sender_email},
            "to": [{"email": message.to, "name": message.to_name}],
            "subject": message.subject,
            "htmlContent": message.html,
            "textContent": message.text,
        }

    def deliver(self, message: EmailMessage) -> DeliveryResult:
        try:
            response = self.session.post(
                self.api_url,
                json=self.build_payload(message),
                headers={"api-key": self.api_key, "Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Brevo request failed", to=message.to, error=str(exc))
            return DeliveryResult.failed(str(exc))

        if not response.ok:
            logger.error("Brevo rejected email", to=message.to, status_code=response.status_code, response=response.text[:500])
            return DeliveryResult.failed(f"Brevo API returned {response.status_code}")

        try:
            message_id = response.json().get("messageId")
        except ValueError:
            message_id = None

        logger.info("Email sent via Brevo", to=message.to, message_id=message_id)
        return DeliveryResult.sent(message_id)
