"""Product aggregate — the stock ledger for products and their measurement variants.

A product either tracks stock directly or delegates it to a set of
ProductMeasurement variants (e.g. 500g / 1kg packs). In the latter case the
product's own ``stock_quantity`` is a derived cache: the sum of its
measurements' stock, re-synced whenever a measurement's stock changes.

Stock quantities never go negative. Restocking is additive.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Integer, String

from storefront.domain import storefront
from storefront.errors import MissingInventoryTargetError


@storefront.entity(part_of="Product")
class ProductMeasurement:
    """A sellable measurement variant of a product with its own stock count."""

    unit = String(required=True, max_length=20)
    value = String(max_length=50)
    price = Float(min_value=0.0)
    sale_price = Float(min_value=0.0)
    sku = String(max_length=50)
    stock_quantity = Integer(default=0, min_value=0)
    is_default = Boolean(default=False)
    is_active = Boolean(default=True)


@storefront.aggregate
class Product:
    name = String(required=True, max_length=255)
    sku = String(max_length=50)
    price = Float(min_value=0.0)
    stock_quantity = Integer(default=0, min_value=0)
    measurements = HasMany(ProductMeasurement)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, name, stock_quantity=0, sku=None, price=None):
        now = datetime.now(UTC)
        return cls(
            name=name,
            sku=sku,
            price=price,
            stock_quantity=stock_quantity,
            created_at=now,
            updated_at=now,
        )

    @property
    def tracks_measurements(self):
        return bool(self.measurements)

    # -------------------------------------------------------------------
    # Measurements
    # -------------------------------------------------------------------
    def add_measurement(self, unit, stock_quantity=0, value=None, price=None, sku=None, is_default=False):
        """Add a measurement variant and fold its stock into the product total."""
        measurement = ProductMeasurement(
            unit=unit,
            value=value,
            price=price,
            sku=sku,
            stock_quantity=stock_quantity,
            is_default=is_default,
        )
        self.add_measurements(measurement)
        self.sync_stock_with_measurements()
        return measurement

    def measurement(self, measurement_id):
        return next((m for m in self.measurements if str(m.id) == str(measurement_id)), None)

    def sync_stock_with_measurements(self):
        """Recompute the product stock as the sum of its measurements' stock.

        Returns True when the cached product stock changed. Products without
        measurements track stock directly and are left alone.
        """
        if not self.measurements:
            return False

        total = sum(m.stock_quantity or 0 for m in self.measurements)
        if total == self.stock_quantity:
            return False

        self.stock_quantity = total
        self.updated_at = datetime.now(UTC)
        return True

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def available_stock(self, measurement_id=None):
        if measurement_id:
            measurement = self.measurement(measurement_id)
            return measurement.stock_quantity if measurement else 0
        return self.stock_quantity

    def restock(self, quantity, measurement_id=None):
        """Return ``quantity`` units to stock.

        With a ``measurement_id`` the units go back to that measurement and the
        product total is re-synced; otherwise they go to the product directly.
        """
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Restock quantity must be at least 1"]})

        if measurement_id:
            measurement = self._require_measurement(measurement_id)
            measurement.stock_quantity = (measurement.stock_quantity or 0) + quantity
            self.sync_stock_with_measurements()
        else:
            self.stock_quantity = (self.stock_quantity or 0) + quantity

        self.updated_at = datetime.now(UTC)

    def deduct(self, quantity, measurement_id=None):
        """Take ``quantity`` units out of stock. Never lets stock go negative."""
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Deduction quantity must be at least 1"]})

        if measurement_id:
            measurement = self._require_measurement(measurement_id)
            if (measurement.stock_quantity or 0) < quantity:
                raise ValidationError(
                    {"stock_quantity": [f"Insufficient stock: {measurement.stock_quantity} available, {quantity} requested"]}
                )
            measurement.stock_quantity -= quantity
            self.sync_stock_with_measurements()
        else:
            if (self.stock_quantity or 0) < quantity:
                raise ValidationError(
                    {"stock_quantity": [f"Insufficient stock: {self.stock_quantity} available, {quantity} requested"]}
                )
            self.stock_quantity -= quantity

        self.updated_at = datetime.now(UTC)

    def _require_measurement(self, measurement_id):
        measurement = self.measurement(measurement_id)
        if measurement is None:
            raise MissingInventoryTargetError(
                {"measurement_id": [f"Measurement {measurement_id} not found on product {self.id}"]}
            )
        return measurement
