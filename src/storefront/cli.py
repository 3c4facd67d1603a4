"""Storefront back-office CLI.

Entry points for the scheduled and operator-run jobs:

Usage:
    storefront expire-unpaid --hours 24        # Expire orders unpaid for 24h
    storefront expire-unpaid --sweep fast      # Use the fast-sweep timeout
    storefront expire-unpaid --dry-run         # Report what would be expired
    storefront sync-stock                      # Re-derive product stock from measurements
    storefront expired-report --start 2026-01-01 --end 2026-01-31
"""

import argparse
import json
import sys
from datetime import date

from storefront.config import Sweep


def _print_json(data):
    print(json.dumps(data, indent=2, default=str))


def expire_unpaid(args) -> int:
    from storefront.expiration.sweep import expire_unpaid_orders

    summary = expire_unpaid_orders(hours=args.hours, sweep=args.sweep, dry_run=args.dry_run)

    if args.json:
        _print_json(summary.as_dict())
    else:
        mode = "Dry run: " if summary.dry_run else ""
        print(f"{mode}orders unpaid for more than {summary.hours:g}h (placed before {summary.cutoff.isoformat()})")
        print(f"  found: {summary.found}")
        if summary.dry_run:
            for plan in summary.planned:
                print(f"  would expire #{plan.order_number} ({plan.grand_total:.2f})")
        else:
            print(f"  expired: {summary.succeeded}")
            print(f"  skipped: {summary.skipped}")
            print(f"  failed: {summary.failed}")
            for failure in summary.failures:
                print(f"    #{failure.order_number}: {failure.error}")

    return 1 if summary.failed else 0


def sync_stock(args) -> int:
    from protean.utils.globals import current_domain

    from storefront.catalogue.stock_sync import SyncProductStock

    synced = current_domain.process(SyncProductStock(product_id=args.product), asynchronous=False)
    print(f"Products resynced: {synced}")
    return 0


def expired_report(args) -> int:
    from storefront.projections.expired_orders import expired_orders_report

    report = expired_orders_report(start=args.start, end=args.end, top=args.top)

    if args.json:
        _print_json(report)
        return 0

    summary = report["summary"]
    print(f"Expired orders {report['period']['start']} to {report['period']['end']}")
    print(f"  count: {summary['expired_orders']}")
    print(f"  value: {summary['expired_value']:.2f} (average {summary['average_value']:.2f})")
    print("Top products:")
    for row in report["top_products"]:
        print(f"  {row['name'] or row['product_id']}: {row['quantity']} units in {row['orders']} orders")
    print("Top customers:")
    for row in report["top_customers"]:
        print(f"  {row['name'] or row['customer_id']}: {row['expired_orders']} orders ({row['expired_value']:.2f})")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog="storefront", description="Storefront back-office jobs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    expire_parser = subparsers.add_parser("expire-unpaid", help="Expire pending orders left unpaid")
    timeout = expire_parser.add_mutually_exclusive_group()
    timeout.add_argument("--hours", type=float, help="Expire orders unpaid for more than this many hours")
    timeout.add_argument(
        "--sweep",
        choices=[s.value for s in Sweep],
        default=Sweep.DAILY.value,
        help="Use the configured timeout of a scheduled sweep (default: daily)",
    )
    expire_parser.add_argument("--dry-run", action="store_true", help="Report without changing anything")
    expire_parser.add_argument("--json", action="store_true", help="Print the summary as JSON")
    expire_parser.set_defaults(handler=expire_unpaid)

    sync_parser = subparsers.add_parser("sync-stock", help="Re-derive product stock from measurement stock")
    sync_parser.add_argument("--product", help="Only resync this product id")
    sync_parser.set_defaults(handler=sync_stock)

    report_parser = subparsers.add_parser("expired-report", help="Report on expired orders")
    report_parser.add_argument("--start", type=date.fromisoformat, help="First day, YYYY-MM-DD (default: 30 days ago)")
    report_parser.add_argument("--end", type=date.fromisoformat, help="Last day, YYYY-MM-DD (default: today)")
    report_parser.add_argument("--top", type=int, default=5, help="Rows in the top products/customers lists")
    report_parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    report_parser.set_defaults(handler=expired_report)

    return parser


def run(argv=None) -> int:
    """Parse ``argv`` and run the command inside the active domain context."""
    from storefront.utils.logging import add_context, clear_context

    args = build_parser().parse_args(argv)
    add_context(command=args.command)
    try:
        return args.handler(args)
    finally:
        clear_context()


def main(argv=None) -> int:
    from storefront.domain import storefront
    from storefront.utils.logging import configure_logging

    configure_logging()
    storefront.init()

    with storefront.domain_context():
        return run(argv)


if __name__ == "__main__":
    sys.exit(main())
