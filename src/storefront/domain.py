"""Storefront bounded context — Orders, Stock Ledger, Coupons and their side effects.

Handles the order status lifecycle, the scheduled expiration of unpaid
orders, the compensating stock and coupon reversals, and the notifications
and analytics that react to expired orders.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
