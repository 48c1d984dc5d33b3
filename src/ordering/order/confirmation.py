"""Confirmation Reader — read-only lookup of a finished order.

The post-payment redirect may carry the internal id, the human-facing order
number, or the processor's order reference depending on which path produced
it, so ``resolve`` tries them in that order. The receipt is rendered from the
order's stored snapshot; nothing is recomputed from the (already cleared)
cart.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.order.order import Order

logger = structlog.get_logger(__name__)


class OrderConfirmationReader:
    def find(self, reference) -> Order | None:
        if not reference:
            return None

        repo = current_domain.repository_for(Order)
        try:
            return repo.get(reference)
        except ObjectNotFoundError:
            pass

        order = repo.find_by_order_number(reference)
        if order is None:
            order = repo.find_by_processor_order_ref(reference)
        return order

    def resolve(self, reference) -> dict:
        order = self.find(reference)
        if order is None:
            logger.info("confirmation_not_found", reference=reference)
            raise ObjectNotFoundError(f"No order matches reference {reference}")
        return order.to_receipt()


def order_history(customer_id) -> list[dict]:
    """A customer's orders, newest first."""
    orders = current_domain.repository_for(Order).list_for_customer(customer_id)
    return [order.to_receipt() for order in orders]
