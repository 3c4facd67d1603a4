"""Application tests for OrderExpirationNotifier.

Covers:
- An expired order's customer gets exactly one email
- The notified marker is set only after a confirmed send
- Failed sends leave the marker unset so a redelivery can retry
- Missing customers, missing emails and the off switch skip the send
- Notification problems never undo the expiration
"""

import json
from unittest.mock import MagicMock

from protean import current_domain
from storefront.customer.customer import Customer
from storefront.expiration.expiry import ExpireOrder
from storefront.notifications.expiration import OrderExpirationNotifier
from storefront.order.events import OrderExpired
from storefront.order.order import Order


def _expire(order, now):
    current_domain.process(ExpireOrder(order_id=str(order.id), expired_at=now), asynchronous=False)
    return current_domain.repository_for(Order).get(str(order.id))


def _expired_event(order):
    return OrderExpired(
        order_id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id),
        grand_total=order.grand_total,
        items=json.dumps(order.items_snapshot()),
        expired_at=order.expired_at,
    )


class TestExpirationEmail:
    def test_customer_is_emailed_once(self, make_order, email_channel, customer, now):
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}])

        expired = _expire(order, now)

        assert len(email_channel.sent_emails) == 1
        email = email_channel.sent_emails[0]
        assert email.to == "ada@example.com"
        assert email.to_name == "Ada Obi"
        assert email.subject == f"Your Order #{order.order_number} Has Expired"
        assert f"/account/orders/{order.id}" in email.text
        assert "Hello Ada" in email.text
        assert expired.expiration_notified_at is not None

    def test_redelivered_event_does_not_resend(self, make_order, email_channel, now):
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}])
        expired = _expire(order, now)
        marker = expired.expiration_notified_at

        OrderExpirationNotifier().on_order_expired(_expired_event(expired))

        assert len(email_channel.sent_emails) == 1
        assert current_domain.repository_for(Order).get(str(order.id)).expiration_notified_at == marker


class TestFailedDelivery:
    def test_failed_send_leaves_marker_unset(self, make_order, email_channel, now):
        email_channel.fail_with("Brevo down")
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}])

        expired = _expire(order, now)

        assert expired.status == "expired"
        assert expired.expiration_notified_at is None
        assert email_channel.sent_emails == []

    def test_redelivery_after_failure_sends(self, make_order, email_channel, now):
        email_channel.fail_with()
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}])
        expired = _expire(order, now)

        email_channel.recover()
        OrderExpirationNotifier().on_order_expired(_expired_event(expired))

        assert len(email_channel.sent_emails) == 1
        assert current_domain.repository_for(Order).get(str(order.id)).expiration_notified_at is not None

    def test_channel_exception_does_not_undo_expiration(self, make_order, email_channel, now):
        email_channel.send = MagicMock(side_effect=RuntimeError("socket closed"))
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}])

        expired = _expire(order, now)

        assert expired.status == "expired"
        assert expired.expiration_notified_at is None


class TestSkippedNotifications:
    def test_missing_customer(self, make_order, email_channel, now):
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}], customer_id="deleted-customer")

        expired = _expire(order, now)

        assert expired.status == "expired"
        assert email_channel.sent_emails == []
        assert expired.expiration_notified_at is None

    def test_customer_without_email(self, make_order, email_channel, now):
        walk_in = Customer.register(name="Walk In", phone="08030000000")
        current_domain.repository_for(Customer).add(walk_in)
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}], customer_id=str(walk_in.id))

        expired = _expire(order, now)

        assert email_channel.sent_emails == []
        assert expired.expiration_notified_at is None

    def test_notifications_switched_off(self, make_order, email_channel, monkeypatch, now):
        monkeypatch.setenv("SEND_ORDER_EXPIRATION_NOTIFICATIONS", "false")
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}])

        expired = _expire(order, now)

        assert expired.status == "expired"
        assert email_channel.sent_emails == []
