"""Administrative order status update — command and handler.

Moving an order to ``expired`` here is held to the same preconditions as the
sweep and hands back its stock and coupon use in the same unit of work.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.expiration.expiry import reverse_inventory
from storefront.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)


@storefront.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous_status = order.status

        order.transition_to(command.status)
        if order.status == OrderStatus.EXPIRED.value:
            reverse_inventory(order)
        repo.add(order)

        logger.info(
            "Order status updated",
            order_id=str(order.id),
            order_number=order.order_number,
            previous_status=previous_status,
            status=order.status,
            payment_status=order.payment_status,
        )
        return order.status
