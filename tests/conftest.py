import json
import logging
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pin the config environment before the domain is imported and initialized."""
    os.environ["PROTEAN_ENV"] = session.config.option.env
    for channel_var in ("EMAIL_CHANNEL", "SMS_CHANNEL"):
        os.environ.pop(channel_var, None)

    # Route structlog through stdlib logging so log lines never land on stdout
    from storefront.utils.logging import setup_structlog

    setup_structlog()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def run_around_tests(_ctx):
    """Fixture to automatically cleanup infrastructure after every test"""
    from storefront.notifications.channel import reset_channels

    reset_channels()

    yield

    from protean import current_domain

    # Clear all databases
    for _, provider in current_domain.providers.items():
        provider._data_reset()

    # Drain event stores
    current_domain.event_store.store._data_reset()

    reset_channels()


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------
@pytest.fixture
def email_channel():
    from storefront.notifications.channel import get_channel

    return get_channel("Email")


@pytest.fixture
def sms_channel():
    from storefront.notifications.channel import get_channel

    return get_channel("SMS")


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
@pytest.fixture
def now():
    return datetime.now(UTC).replace(microsecond=0)


@pytest.fixture
def customer():
    from protean import current_domain
    from storefront.customer.customer import Customer

    record = Customer.register(name="Ada Obi", email="ada@example.com", phone="08031234567")
    current_domain.repository_for(Customer).add(record)
    return record


@pytest.fixture
def make_product():
    """Persist a product; ``measurements`` is a list of (unit, stock) pairs."""
    from protean import current_domain
    from storefront.catalogue.product import Product

    def _make(name="Basmati Rice", stock_quantity=0, measurements=None):
        product = Product.create(name=name, stock_quantity=stock_quantity)
        for unit, stock in measurements or []:
            product.add_measurement(unit=unit, stock_quantity=stock)
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture
def make_coupon():
    from protean import current_domain
    from storefront.coupon.coupon import Coupon

    def _make(code="SAVE10", used_count=0, usage_limit=None):
        coupon = Coupon.create(code=code, used_count=used_count, usage_limit=usage_limit)
        current_domain.repository_for(Coupon).add(coupon)
        return coupon

    return _make


@pytest.fixture
def make_order(customer, now):
    """Persist a pending, unpaid order placed ``age_hours`` before ``now``.

    Stock and coupon counters are left alone; use PlaceOrder for that.
    """
    from protean import current_domain
    from storefront.order.order import Order

    def _make(items, age_hours=48, coupon_id=None, grand_total=None, customer_id=None, created_at=None):
        pricing = None
        if grand_total is not None:
            pricing = {"subtotal": grand_total, "grand_total": grand_total}
        order = Order.create(
            customer_id=customer_id or str(customer.id),
            items_data=items,
            pricing=pricing,
            coupon_id=coupon_id,
            created_at=created_at or now - timedelta(hours=age_hours),
        )
        order._events = []
        current_domain.repository_for(Order).add(order)
        return order

    return _make


@pytest.fixture
def place_order(customer, now):
    """Place an order through PlaceOrder, deducting stock and redeeming the coupon."""
    from protean import current_domain
    from storefront.order.placement import PlaceOrder

    def _place(items, age_hours=48, coupon_id=None, grand_total=None):
        return current_domain.process(
            PlaceOrder(
                customer_id=str(customer.id),
                items=json.dumps(items),
                coupon_id=coupon_id,
                grand_total=grand_total,
                placed_at=now - timedelta(hours=age_hours),
            ),
            asynchronous=False,
        )

    return _place


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
@pytest.fixture
def configured_logging(tmp_path, monkeypatch, capsys):
    """Install the application log handlers: console on the captured stderr, files under ``tmp_path``."""
    from storefront.utils.logging import configure_logging, setup_structlog

    monkeypatch.setenv("LOG_LEVEL", "INFO")
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level

    configure_logging(log_dir=tmp_path)
    yield tmp_path

    for handler in root.handlers:
        handler.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)
    setup_structlog()
