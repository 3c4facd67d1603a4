"""Scheduled expiration sweep — what a scheduler or operator runs.

The timeout comes from the caller or, when omitted, from the configured
preset for the requested sweep (``fast`` or ``daily``).

This is an application service and not a command handler: it must run
outside any unit of work so that each ``ExpireOrder`` it issues commits or
rolls back on its own.
"""

from protean.exceptions import ValidationError

from storefront.config import Sweep, expiration_hours
from storefront.expiration.scanner import ExpirationScanner, ExpirationSummary


def expire_unpaid_orders(
    hours: float | None = None,
    sweep: str = Sweep.DAILY.value,
    dry_run: bool = False,
    scanner: ExpirationScanner | None = None,
) -> ExpirationSummary:
    """Expire every pending, unpaid order placed more than ``hours`` ago."""
    if hours is None:
        try:
            hours = expiration_hours(sweep)
        except ValueError:
            raise ValidationError({"sweep": [f"Unknown sweep: {sweep}"]}) from None

    return (scanner or ExpirationScanner()).scan(hours, dry_run=dry_run)
