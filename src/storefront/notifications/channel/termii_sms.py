"""Termii SMS adapter — plain-text SMS over the Termii HTTP API.

Configured from the environment: ``TERMII_API_KEY`` (required) and
``TERMII_API_URL``. The sender id comes from the ``TERMII_SENDER_ID``
setting.
"""

import os

import requests
import structlog

from storefront.notifications.channel.port import DeliveryResult, SMSMessage, SMSPort

logger = structlog.get_logger(__name__)

TERMII_API_URL = "https://api.ng.termii.com/api"


class TermiiSMSAdapter(SMSPort):
    def __init__(
        self,
        api_key: str,
        sender_id: str | None = None,
        api_url: str = TERMII_API_URL,
        channel: str = "generic",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(sender_id)
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.channel = channel
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls):
        api_key = os.getenv("TERMII_API_KEY")
        if not api_key:
            raise ValueError("TERMII_API_KEY must be set to use the Termii SMS channel")
        return cls(api_key=api_key, api_url=os.getenv("TERMII_API_URL", TERMII_API_URL))

    def build_payload(self, message: SMSMessage) -> dict:
        # Termii authenticates with the key in the body, not a header
        return {
            "api_key": self.api_key,
            "to": message.to,
            "from": message.sender_id,
            "sms": message.body,
            "type": "plain",
            "channel": self.channel,
        }

    def deliver(self, message: SMSMessage) -> DeliveryResult:
        try:
            response = self.session.post(
                f"{self.api_url}/sms/send", json=self.build_payload(message), timeout=self.timeout
            )
        except requests.RequestException as exc:
            logger.error("Termii request failed", to=message.to, error=str(exc))
            return DeliveryResult.failed(str(exc))

        if not response.ok:
            logger.error("Termii rejected SMS", to=message.to, status_code=response.status_code, response=response.text[:500])
            return DeliveryResult.failed(f"Termii API returned {response.status_code}")

        try:
            message_id = response.json().get("message_id")
        except ValueError:
            message_id = None

        logger.info("SMS sent via Termii", to=message.to, message_id=message_id)
        return DeliveryResult.sent(message_id)
