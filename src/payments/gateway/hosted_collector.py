"""Collector for the browser-hosted payment widget.

The widget runs in the customer's browser. Opening it here only records the
collection request so the API can hand it to the client; the widget's three
outcomes come back later as HTTP posts to the checkout routes. Requests are
kept per processor order reference until the saga releases them on a terminal
callback.
"""

import structlog

from payments.gateway.port import (
    PaymentCollectionRequest,
    PaymentCollector,
    PaymentContinuations,
)

logger = structlog.get_logger(__name__)


class ClientHostedCollector(PaymentCollector):
    def __init__(self) -> None:
        self.pending: dict[str, tuple[PaymentCollectionRequest, PaymentContinuations]] = {}

    def open(self, request: PaymentCollectionRequest, continuations: PaymentContinuations) -> None:
        self.pending[request.processor_order_ref] = (request, continuations)
        logger.info(
            "payment_widget_requested",
            processor_order_ref=request.processor_order_ref,
            amount_minor_units=request.amount_minor_units,
            currency=request.currency,
        )

    def release(self, processor_order_ref: str) -> None:
        if self.pending.pop(processor_order_ref, None) is not None:
            logger.debug("payment_widget_released", processor_order_ref=processor_order_ref)
