"""Application tests for UpdateOrderStatus and the status update notices."""

import pytest
from protean import current_domain
from storefront.catalogue.product import Product
from storefront.coupon.coupon import Coupon
from storefront.errors import IneligibleOrderError, TransitionError
from storefront.expiration.expiry import ExpireOrder
from storefront.order.order import Order
from storefront.order.status import UpdateOrderStatus


def _update(order, status):
    return current_domain.process(UpdateOrderStatus(order_id=str(order.id), status=status), asynchronous=False)


def _reload(order):
    return current_domain.repository_for(Order).get(str(order.id))


class TestUpdateOrderStatus:
    def test_status_and_payment_are_updated(self, make_order):
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}], age_hours=1)

        assert _update(order, "shipped") == "shipped"

        reloaded = _reload(order)
        assert reloaded.status == "shipped"
        assert reloaded.payment_status == "paid"

    def test_walks_the_lifecycle(self, make_order):
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}], age_hours=1)
        for status in ("processing", "shipped", "delivered", "completed"):
            _update(order, status)
        assert _reload(order).status == "completed"

    def test_illegal_transition_is_rejected(self, make_order):
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}], age_hours=1)
        _update(order, "delivered")

        with pytest.raises(TransitionError):
            _update(order, "processing")
        assert _reload(order).status == "delivered"

    def test_expired_orders_are_terminal(self, make_order, now):
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}])
        current_domain.process(ExpireOrder(order_id=str(order.id), expired_at=now), asynchronous=False)

        with pytest.raises(TransitionError):
            _update(order, "processing")
        assert _reload(order).status == "expired"

    def test_admin_cannot_expire_a_paid_order(self, make_order):
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}], age_hours=1)
        _update(order, "processing")

        with pytest.raises(IneligibleOrderError):
            _update(order, "expired")

    def test_admin_expiry_returns_stock_and_coupon(self, make_product, make_coupon, place_order, email_channel):
        product = make_product(stock_quantity=10)
        coupon = make_coupon(used_count=0)
        order_id = place_order(
            items=[{"product_id": str(product.id), "quantity": 4, "unit_price": 50.0}],
            coupon_id=str(coupon.id),
            age_hours=1,
        )
        products = current_domain.repository_for(Product)
        coupons = current_domain.repository_for(Coupon)
        assert products.get(str(product.id)).stock_quantity == 6
        assert coupons.get(str(coupon.id)).used_count == 1

        result = current_domain.process(UpdateOrderStatus(order_id=order_id, status="expired"), asynchronous=False)

        assert result == "expired"
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == "expired"
        assert order.expired_at is not None
        assert products.get(str(product.id)).stock_quantity == 10
        assert coupons.get(str(coupon.id)).used_count == 0
        assert [email.subject for email in email_channel.sent_emails] == [
            f"Your Order #{order.order_number} Has Expired"
        ]

    def test_rejected_admin_expiry_leaves_stock_alone(self, make_product, place_order):
        product = make_product(stock_quantity=10)
        order_id = place_order(items=[{"product_id": str(product.id), "quantity": 4}], age_hours=1)
        current_domain.process(UpdateOrderStatus(order_id=order_id, status="processing"), asynchronous=False)

        with pytest.raises(IneligibleOrderError):
            current_domain.process(UpdateOrderStatus(order_id=order_id, status="expired"), asynchronous=False)
        assert current_domain.repository_for(Product).get(str(product.id)).stock_quantity == 6


class TestStatusNotices:
    def test_email_and_sms_are_sent(self, make_order, email_channel, sms_channel):
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}], age_hours=1)

        _update(order, "shipped")

        assert len(email_channel.sent_emails) == 1
        assert email_channel.sent_emails[0].subject == f"Order #{order.order_number} Update: Shipped"
        assert len(sms_channel.sent_messages) == 1
        assert sms_channel.sent_messages[0].to == "2348031234567"
        assert "on its way" in sms_channel.sent_messages[0].body

    def test_sms_failure_does_not_block_email(self, make_order, email_channel, sms_channel):
        sms_channel.fail_with()
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}], age_hours=1)

        _update(order, "processing")

        assert len(email_channel.sent_emails) == 1
        assert sms_channel.sent_messages == []
        assert _reload(order).status == "processing"

    def test_channels_can_be_switched_off(self, make_order, email_channel, sms_channel, monkeypatch):
        monkeypatch.setenv("ORDER_STATUS_UPDATE_SMS", "false")
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}], age_hours=1)

        _update(order, "processing")

        assert len(email_channel.sent_emails) == 1
        assert sms_channel.sent_messages == []

    def test_missing_customer_skips_notices(self, make_order, email_channel, sms_channel):
        order = make_order(items=[{"product_id": "p-1", "quantity": 1}], age_hours=1, customer_id="gone")

        _update(order, "processing")

        assert email_channel.sent_emails == []
        assert sms_channel.sent_messages == []
        assert _reload(order).status == "processing"
