"""Domain events for the Order aggregate.

Events are versioned, immutable facts raised for the audit trail of every
checkout: placement, and the payment outcome recorded against the order.
"""

from protean.fields import DateTime, Float, Identifier, String

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A new order was recorded in PENDING state, before any money moved."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    payment_method = String(required=True)
    processor_order_ref = String()
    total_amount = Float(required=True)
    currency = String(required=True)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPaymentConfirmed:
    """The processor verified the payment and the order moved to processing."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    processor_order_ref = String()
    processor_payment_ref = String(required=True)
    confirmed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPaymentFailed:
    """Payment for the order was declined or could not be verified."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reason = String(required=True)
    failed_at = DateTime(required=True)
