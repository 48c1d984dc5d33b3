"""Domain events for the CheckoutSession aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="CheckoutSession")
class CheckoutSubmitted:
    """The customer pressed "place order"; orchestration started."""

    __version__ = 1

    session_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    payment_method = String(required=True)
    attempt = Integer(required=True)
    submitted_at = DateTime(required=True)


@ordering.event(part_of="CheckoutSession")
class CheckoutSucceeded:
    __version__ = 1

    session_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_number = String(required=True)
    succeeded_at = DateTime(required=True)


@ordering.event(part_of="CheckoutSession")
class CheckoutFailed:
    __version__ = 1

    session_id = Identifier(required=True)
    order_id = Identifier()
    reason = String(required=True)
    failed_at = DateTime(required=True)
