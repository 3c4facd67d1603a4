"""Tests for the expiration eligibility rules."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError
from storefront.expiration.eligibility import as_utc, cutoff_for, is_eligible
from storefront.order.order import Order


def _order(created_at, **overrides):
    order = Order.create(
        customer_id="cust-001",
        items_data=[{"product_id": "prod-001", "quantity": 1, "unit_price": 100.0}],
        created_at=created_at,
    )
    for field, value in overrides.items():
        setattr(order, field, value)
    return order


class TestCutoff:
    def test_cutoff_is_now_minus_hours(self, now):
        assert cutoff_for(24, now) == now - timedelta(hours=24)

    def test_fractional_hours(self, now):
        assert cutoff_for(0.5, now) == now - timedelta(minutes=30)

    def test_zero_hours_is_now(self, now):
        assert cutoff_for(0, now) == now

    def test_negative_hours_rejected(self, now):
        with pytest.raises(ValidationError):
            cutoff_for(-1, now)

    @pytest.mark.parametrize("hours", [float("nan"), float("inf")])
    def test_non_finite_hours_rejected(self, now, hours):
        with pytest.raises(ValidationError):
            cutoff_for(hours, now)

    def test_naive_now_is_treated_as_utc(self):
        naive = datetime(2026, 1, 2, 12, 0)
        assert cutoff_for(1, naive) == datetime(2026, 1, 2, 11, 0, tzinfo=UTC)


class TestIsEligible:
    def test_order_older_than_cutoff_is_eligible(self, now):
        cutoff = cutoff_for(24, now)
        assert is_eligible(_order(now - timedelta(hours=25)), cutoff) is True

    def test_order_placed_exactly_at_cutoff_is_not_eligible(self, now):
        cutoff = cutoff_for(24, now)
        assert is_eligible(_order(now - timedelta(hours=24)), cutoff) is False

    def test_recent_order_is_not_eligible(self, now):
        cutoff = cutoff_for(24, now)
        assert is_eligible(_order(now - timedelta(hours=23)), cutoff) is False

    @pytest.mark.parametrize("payment_status", ["paid", "failed", "refunded"])
    def test_non_pending_payment_is_not_eligible(self, now, payment_status):
        cutoff = cutoff_for(24, now)
        order = _order(now - timedelta(hours=48), payment_status=payment_status)
        assert is_eligible(order, cutoff) is False

    def test_non_pending_status_is_not_eligible(self, now):
        cutoff = cutoff_for(24, now)
        order = _order(now - timedelta(hours=48), status="processing")
        assert is_eligible(order, cutoff) is False

    def test_expired_order_is_not_eligible(self, now):
        cutoff = cutoff_for(24, now)
        order = _order(now - timedelta(hours=48))
        order.expire(now - timedelta(hours=1))
        assert is_eligible(order, cutoff) is False

    def test_naive_created_at_compares_as_utc(self, now):
        cutoff = cutoff_for(24, now)
        created = (now - timedelta(hours=30)).replace(tzinfo=None)
        assert is_eligible(_order(created), cutoff) is True


def test_as_utc_converts_other_offsets():
    from datetime import timezone

    lagos = timezone(timedelta(hours=1))
    assert as_utc(datetime(2026, 1, 1, 13, 0, tzinfo=lagos)) == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def test_orders_store_creation_time_in_utc():
    from datetime import timezone

    lagos = timezone(timedelta(hours=1))
    order = _order(datetime(2026, 1, 1, 13, 0, tzinfo=lagos))
    assert order.created_at == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    assert order.created_at.utcoffset() == timedelta(0)
