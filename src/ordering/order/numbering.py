"""Human-facing order numbers.

``<prefix><last 8 digits of epoch milliseconds><3 random digits>``, e.g.
``ORD71234567042``. Gateway orders use ``ORD``, cash-on-delivery ``COD``.
"""

import random
import time

GATEWAY_PREFIX = "ORD"
CASH_ON_DELIVERY_PREFIX = "COD"


def generate_order_number(prefix: str = GATEWAY_PREFIX) -> str:
    millis = str(int(time.time() * 1000))[-8:]
    return f"{prefix}{millis}{random.randint(0, 999):03d}"
