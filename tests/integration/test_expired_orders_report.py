"""Integration tests for the expired orders report built from the analytics projections."""

from datetime import timedelta

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from storefront.customer.customer import Customer
from storefront.expiration.sweep import expire_unpaid_orders
from storefront.projections.expired_orders import expired_orders_report


@pytest.fixture
def expired_scenario(make_product, place_order, customer):
    rice = make_product(name="Basmati Rice", stock_quantity=50)
    oil = make_product(name="Palm Oil", stock_quantity=50)

    other = Customer.register(name="Bola Ade", email="bola@example.com")
    current_domain.repository_for(Customer).add(other)

    place_order(items=[{"product_id": str(rice.id), "quantity": 4, "unit_price": 100.0}])
    place_order(items=[{"product_id": str(rice.id), "quantity": 1, "unit_price": 100.0}, {"product_id": str(oil.id), "quantity": 2, "unit_price": 250.0}])
    place_order(items=[{"product_id": str(oil.id), "quantity": 1, "unit_price": 250.0}], age_hours=1)

    expire_unpaid_orders(hours=24)
    return rice, oil


class TestExpiredOrdersReport:
    def test_summary(self, expired_scenario, now):
        report = expired_orders_report(start=now.date() - timedelta(days=3), end=now.date())

        assert report["summary"] == {"expired_orders": 2, "expired_value": 1000.0, "average_value": 500.0}

    def test_top_products_by_returned_units(self, expired_scenario, now):
        rice, oil = expired_scenario
        report = expired_orders_report(start=now.date(), end=now.date())

        assert report["top_products"] == [
            {"product_id": str(rice.id), "name": "Basmati Rice", "quantity": 5, "orders": 2},
            {"product_id": str(oil.id), "name": "Palm Oil", "quantity": 2, "orders": 1},
        ]

    def test_top_customers(self, expired_scenario, customer, now):
        report = expired_orders_report(start=now.date(), end=now.date())

        assert report["top_customers"] == [
            {
                "customer_id": str(customer.id),
                "name": "Ada Obi",
                "email": "ada@example.com",
                "expired_orders": 2,
                "expired_value": 1000.0,
            }
        ]

    def test_daily_rate_covers_every_day(self, expired_scenario, now):
        start = now.date() - timedelta(days=2)
        report = expired_orders_report(start=start, end=now.date())

        assert [row["date"] for row in report["daily_rate"]] == [
            (start + timedelta(days=i)).isoformat() for i in range(3)
        ]
        today = report["daily_rate"][-1]
        assert today["expired"] == 2

    def test_orders_outside_the_range_are_excluded(self, expired_scenario, now):
        report = expired_orders_report(start=now.date() - timedelta(days=10), end=now.date() - timedelta(days=5))
        assert report["summary"]["expired_orders"] == 0
        assert report["top_products"] == []

    def test_defaults_to_last_30_days(self, expired_scenario, now):
        report = expired_orders_report()
        assert report["period"]["end"] == now.date().isoformat()
        assert report["period"]["start"] == (now.date() - timedelta(days=30)).isoformat()

    def test_start_after_end_rejected(self, now):
        with pytest.raises(ValidationError):
            expired_orders_report(start=now.date(), end=now.date() - timedelta(days=1))
