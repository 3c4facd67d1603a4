"""Order placement — command and handler.

Placing an order takes its items out of stock and counts a use of its
coupon in the same unit of work, so that expiring the order later can hand
both back.
"""

import json
from collections import defaultdict

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, Identifier, Text
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.coupon.coupon import Coupon
from storefront.domain import storefront
from storefront.order.order import Order


@storefront.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, product_measurement_id, quantity, unit_price}
    coupon_id = Identifier()
    subtotal = Float()
    discount = Float(default=0.0)
    tax = Float(default=0.0)
    shipping_fee = Float(default=0.0)
    grand_total = Float()
    placed_at = DateTime()  # Optional: defaults to now


@storefront.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        pricing = None
        if command.grand_total is not None:
            subtotal = command.subtotal
            if subtotal is None:
                subtotal = sum(item["quantity"] * item.get("unit_price", 0.0) for item in items_data)
            pricing = {
                "subtotal": subtotal,
                "discount": command.discount or 0.0,
                "tax": command.tax or 0.0,
                "shipping_fee": command.shipping_fee or 0.0,
                "grand_total": command.grand_total,
            }

        self._deduct_stock(items_data)
        if command.coupon_id:
            self._redeem_coupon(command.coupon_id)

        order = Order.create(
            customer_id=command.customer_id,
            items_data=items_data,
            pricing=pricing,
            coupon_id=command.coupon_id,
            created_at=command.placed_at,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)

    def _deduct_stock(self, items_data):
        product_repo = current_domain.repository_for(Product)

        by_product = defaultdict(list)
        for item in items_data:
            by_product[str(item["product_id"])].append(item)

        for product_id, items in by_product.items():
            try:
                product = product_repo.get(product_id)
            except ObjectNotFoundError:
                raise ValidationError({"product_id": [f"Product {product_id} does not exist"]}) from None

            for item in items:
                product.deduct(item["quantity"], item.get("product_measurement_id"))
            product_repo.add(product)

    def _redeem_coupon(self, coupon_id):
        coupon_repo = current_domain.repository_for(Coupon)
        try:
            coupon = coupon_repo.get(coupon_id)
        except ObjectNotFoundError:
            raise ValidationError({"coupon_id": [f"Coupon {coupon_id} does not exist"]}) from None

        coupon.redeem()
        coupon_repo.add(coupon)
