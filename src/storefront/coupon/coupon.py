"""Coupon aggregate — tracks how many times a coupon has been redeemed.

``used_count`` is bumped at checkout and handed back when an order that used
the coupon is reversed (expired). The counter never drops below zero.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Integer, String

from storefront.domain import storefront


@storefront.aggregate
class Coupon:
    code = String(required=True, max_length=50)
    used_count = Integer(default=0, min_value=0)
    usage_limit = Integer(min_value=1)  # None means unlimited
    is_active = Boolean(default=True)
    updated_at = DateTime()

    @classmethod
    def create(cls, code, usage_limit=None, used_count=0):
        return cls(
            code=code,
            usage_limit=usage_limit,
            used_count=used_count,
            is_active=True,
            updated_at=datetime.now(UTC),
        )

    @property
    def is_exhausted(self):
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    def redeem(self):
        """Count one more use of the coupon."""
        if not self.is_active:
            raise ValidationError({"code": [f"Coupon {self.code} is not active"]})
        if self.is_exhausted:
            raise ValidationError({"code": [f"Coupon {self.code} has reached its usage limit"]})

        self.used_count = (self.used_count or 0) + 1
        self.updated_at = datetime.now(UTC)

    def release(self):
        """Give back one use. Returns False (and changes nothing) when the count is already zero."""
        if not self.used_count:
            return False

        self.used_count -= 1
        self.updated_at = datetime.now(UTC)
        return True
