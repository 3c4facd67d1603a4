"""Customer aggregate — the user who places orders and receives notifications."""

from datetime import UTC, datetime

from protean.fields import DateTime, String

from storefront.domain import storefront


@storefront.aggregate
class Customer:
    name = String(required=True, max_length=255)
    email = String(max_length=254)
    phone = String(max_length=20)
    created_at = DateTime()

    @classmethod
    def register(cls, name, email=None, phone=None):
        return cls(
            name=name,
            email=email,
            phone=phone,
            created_at=datetime.now(UTC),
        )

    @property
    def first_name(self):
        return (self.name or "").split(" ")[0] or "there"
