"""Ordering bounded context — Shopping Cart, Address Book, Orders and Checkout.

Holds the client cart, the customer's saved shipping addresses, the durable
order record, and the checkout saga that turns a cart into a paid (or
cash-on-delivery) order.
"""

import structlog
from protean.domain import Domain

from ordering.utils.logging import configure_logging

configure_logging()

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
