"""Order placement — command and handler.

Placement is idempotent per key: if an order carrying the same idempotency
key is still unpaid and pending, it is re-attached to the new attempt's order
number and processor reference instead of inserting a duplicate row.
"""

import json

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class PlaceOrder:
    order_number = String(required=True, max_length=32)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of cart line dicts
    shipping_address = Text(required=True)  # JSON: address dict
    payment_method = String(required=True, max_length=50)
    subtotal = Float(required=True)
    tax = Float(default=0.0)
    shipping_fee = Float(default=0.0)
    total_amount = Float(required=True)
    currency = String(max_length=3, default="INR")
    processor_order_ref = String(max_length=255)
    idempotency_key = String(max_length=128)


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        repo = current_domain.repository_for(Order)

        if command.idempotency_key:
            existing = repo.find_by_idempotency_key(command.idempotency_key)
            if existing is not None and existing.awaiting_payment:
                existing.reattach(command.order_number, command.processor_order_ref)
                repo.add(existing)
                logger.info(
                    "order_reattached",
                    order_id=str(existing.id),
                    order_number=command.order_number,
                    idempotency_key=command.idempotency_key,
                )
                return str(existing.id)

        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        shipping_address = (
            json.loads(command.shipping_address)
            if isinstance(command.shipping_address, str)
            else command.shipping_address
        )

        order = Order.place(
            order_number=command.order_number,
            customer_id=command.customer_id,
            items_data=items_data,
            shipping_address=shipping_address,
            payment_method=command.payment_method,
            pricing={
                "subtotal": command.subtotal,
                "tax": command.tax or 0.0,
                "shipping_fee": command.shipping_fee or 0.0,
                "total_amount": command.total_amount,
                "currency": command.currency or "INR",
            },
            processor_order_ref=command.processor_order_ref,
            idempotency_key=command.idempotency_key,
        )
        repo.add(order)
        return str(order.id)
