"""Expiration scanner — finds stale unpaid orders and expires them one by one.

Each order is expired in its own unit of work. A failure on one order is
logged and counted, and the scan moves on; only a failure of the
eligibility query itself aborts the scan. Re-running a scan is always safe:
orders already expired no longer match, and orders a previous run never
reached are still eligible.

Collaborators are injectable so the loop can run against in-memory fakes:

* ``finder(cutoff)`` returns the eligible orders,
* ``expirer(order_id, expired_at, cutoff)`` expires one order,
* ``clock()`` returns the current aware datetime.
"""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.errors import IneligibleOrderError
from storefront.expiration.eligibility import cutoff_for, find_eligible_orders
from storefront.expiration.expiry import ExpireOrder, planned_restocks

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PlannedExpiration:
    """What a dry run would do to one order."""

    order_id: str
    order_number: str
    grand_total: float
    restocks: list = field(default_factory=list)
    coupon_id: str | None = None

    @classmethod
    def from_order(cls, order):
        return cls(
            order_id=str(order.id),
            order_number=order.order_number,
            grand_total=order.grand_total,
            restocks=planned_restocks(order),
            coupon_id=str(order.coupon_id) if order.coupon_id else None,
        )


@dataclass(frozen=True)
class OrderFailure:
    order_id: str
    order_number: str
    error: str


@dataclass
class ExpirationSummary:
    """Outcome of one scan."""

    hours: float
    cutoff: datetime
    dry_run: bool = False
    found: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    failures: list[OrderFailure] = field(default_factory=list)
    planned: list[PlannedExpiration] = field(default_factory=list)

    def as_dict(self):
        data = asdict(self)
        data["cutoff"] = self.cutoff.isoformat()
        return data


def expire_through_domain(order_id, expired_at, cutoff):
    return current_domain.process(
        ExpireOrder(order_id=order_id, expired_at=expired_at, cutoff=cutoff),
        asynchronous=False,
    )


class ExpirationScanner:
    def __init__(self, finder=None, expirer=None, clock=None):
        self.finder = finder or find_eligible_orders
        self.expirer = expirer or expire_through_domain
        self.clock = clock or (lambda: datetime.now(UTC))

    def scan(self, hours: float, dry_run: bool = False) -> ExpirationSummary:
        now = self.clock()
        cutoff = cutoff_for(hours, now)
        summary = ExpirationSummary(hours=hours, cutoff=cutoff, dry_run=dry_run)

        logger.info(
            "Scanning for unpaid orders to expire",
            hours=hours,
            cutoff=cutoff.isoformat(),
            dry_run=dry_run,
        )

        try:
            orders = self.finder(cutoff)
        except Exception:
            logger.exception("Eligibility query failed", cutoff=cutoff.isoformat())
            raise

        summary.found = len(orders)
        if not orders:
            logger.info("No orders to expire")
            return summary

        for order in orders:
            order_id = str(order.id)
            with structlog.contextvars.bound_contextvars(order_id=order_id, order_number=order.order_number):
                if dry_run:
                    plan = PlannedExpiration.from_order(order)
                    summary.planned.append(plan)
                    logger.info(
                        "Would expire order",
                        grand_total=plan.grand_total,
                        restocks=plan.restocks,
                        coupon_id=plan.coupon_id,
                    )
                    continue

                try:
                    self.expirer(order_id, now, cutoff)
                except (IneligibleOrderError, ObjectNotFoundError) as exc:
                    summary.skipped += 1
                    logger.info("Order no longer eligible, skipped", reason=str(exc))
                except Exception as exc:
                    summary.failed += 1
                    summary.failures.append(OrderFailure(order_id, order.order_number, str(exc)))
                    logger.error("Failed to expire order", error=str(exc), exc_info=True)
                else:
                    summary.succeeded += 1

        logger.info(
            "Order expiration scan complete",
            found=summary.found,
            succeeded=summary.succeeded,
            skipped=summary.skipped,
            failed=summary.failed,
            dry_run=dry_run,
        )
        return summary
