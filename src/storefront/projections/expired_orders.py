"""Expired orders report — what expiration cost the store over a date range.

Built from the ExpiredOrderRecord and DailyOrderAnalytics projections:

* summary: number of expired orders, their total and average value
* top products: products with the most units returned to stock
* top customers: customers with the most abandoned orders
* daily rate: expired orders as a percentage of orders placed, per day
"""

import json
from collections import defaultdict
from datetime import UTC, date, datetime, timedelta

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.notifications.helpers import find_customer
from storefront.projections.order_analytics import DailyOrderAnalytics, ExpiredOrderRecord

DEFAULT_WINDOW_DAYS = 30
DEFAULT_TOP = 5
_PAGE_SIZE = 100


def _expired_records(start: date, end: date):
    query = current_domain.repository_for(ExpiredOrderRecord)._dao.query.filter(
        expired_on__gte=start.isoformat(),
        expired_on__lte=end.isoformat(),
    )
    records = []
    offset = 0
    while True:
        page = query.order_by("expired_on").offset(offset).limit(_PAGE_SIZE).all()
        records.extend(page.items)
        offset += _PAGE_SIZE
        if offset >= page.total:
            return records


def _product_name(product_id):
    try:
        return current_domain.repository_for(Product).get(product_id).name
    except ObjectNotFoundError:
        return None


def _orders_placed_on(day: date) -> int:
    try:
        return current_domain.repository_for(DailyOrderAnalytics).get(day.isoformat()).total_orders_count or 0
    except ObjectNotFoundError:
        return 0


def top_products(records, limit=DEFAULT_TOP):
    quantities = defaultdict(int)
    orders = defaultdict(set)
    for record in records:
        for item in json.loads(record.items or "[]"):
            quantities[item["product_id"]] += item["quantity"]
            orders[item["product_id"]].add(record.order_id)

    ranked = sorted(quantities.items(), key=lambda pair: pair[1], reverse=True)[:limit]
    return [
        {
            "product_id": product_id,
            "name": _product_name(product_id),
            "quantity": quantity,
            "orders": len(orders[product_id]),
        }
        for product_id, quantity in ranked
    ]


def top_customers(records, limit=DEFAULT_TOP):
    counts = defaultdict(int)
    values = defaultdict(float)
    for record in records:
        customer_id = str(record.customer_id)
        counts[customer_id] += 1
        values[customer_id] += record.grand_total or 0.0

    ranked = sorted(counts.items(), key=lambda pair: pair[1], reverse=True)[:limit]
    rows = []
    for customer_id, count in ranked:
        customer = find_customer(customer_id)
        rows.append(
            {
                "customer_id": customer_id,
                "name": customer.name if customer else None,
                "email": customer.email if customer else None,
                "expired_orders": count,
                "expired_value": round(values[customer_id], 2),
            }
        )
    return rows


def daily_expiration_rate(records, start: date, end: date):
    expired_per_day = defaultdict(int)
    for record in records:
        expired_per_day[record.expired_on] += 1

    rows = []
    day = start
    while day <= end:
        placed = _orders_placed_on(day)
        expired = expired_per_day.get(day.isoformat(), 0)
        rows.append(
            {
                "date": day.isoformat(),
                "expired": expired,
                "placed": placed,
                "rate": round(expired / placed * 100, 2) if placed else 0.0,
            }
        )
        day += timedelta(days=1)
    return rows


def expired_orders_report(start: date | None = None, end: date | None = None, top: int = DEFAULT_TOP) -> dict:
    """Report on orders expired between ``start`` and ``end`` (inclusive).

    Defaults to the last 30 days.
    """
    end = end or datetime.now(UTC).date()
    start = start or end - timedelta(days=DEFAULT_WINDOW_DAYS)
    if start > end:
        raise ValidationError({"start": ["Start date must not be after end date"]})

    records = _expired_records(start, end)
    total_value = sum(r.grand_total or 0.0 for r in records)

    return {
        "period": {"start": start.isoformat(), "end": end.isoformat()},
        "summary": {
            "expired_orders": len(records),
            "expired_value": round(total_value, 2),
            "average_value": round(total_value / len(records), 2) if records else 0.0,
        },
        "top_products": top_products(records, top),
        "top_customers": top_customers(records, top),
        "daily_rate": daily_expiration_rate(records, start, end),
    }
