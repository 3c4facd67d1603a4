"""Stock resync — recompute product stock from measurement stock.

Repairs products whose cached stock drifted from the sum of their
measurement stocks (e.g. after a manual data fix). Products without
measurements are left alone.
"""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.domain import storefront

logger = structlog.get_logger(__name__)

_PAGE_SIZE = 100


@storefront.command(part_of="Product")
class SyncProductStock:
    """Re-derive product stock from measurement stock across the catalogue."""

    product_id = Identifier()  # Optional: restrict the sync to one product


@storefront.command_handler(part_of=Product)
class SyncProductStockHandler:
    @handle(SyncProductStock)
    def sync_product_stock(self, command):
        repo = current_domain.repository_for(Product)

        if command.product_id:
            products = [repo.get(command.product_id)]
        else:
            products = _all_products(repo)

        synced = 0
        for product in products:
            previous = product.stock_quantity
            if product.sync_stock_with_measurements():
                repo.add(product)
                synced += 1
                logger.info(
                    "Product stock resynced",
                    product_id=str(product.id),
                    previous_stock=previous,
                    stock_quantity=product.stock_quantity,
                )

        logger.info("Product stock sync complete", products=len(products), synced=synced)
        return synced


def _all_products(repo):
    products = []
    offset = 0
    while True:
        page = repo._dao.query.order_by("name").offset(offset).limit(_PAGE_SIZE).all()
        products.extend(page.items)
        offset += _PAGE_SIZE
        if offset >= page.total:
            return products
