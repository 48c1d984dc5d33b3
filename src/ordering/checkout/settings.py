"""Checkout settings read from the environment.

Pricing constants default to the storefront's published rules: 18% GST,
free shipping above ₹4,999, otherwise a flat ₹99.
"""

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache


@dataclass(frozen=True)
class CheckoutSettings:
    currency: str = "INR"
    tax_rate: Decimal = Decimal("0.18")
    free_shipping_threshold: Decimal = Decimal("4999")
    shipping_fee: Decimal = Decimal("99")
    merchant_name: str = "SilverQala"
    merchant_description: str = "Jewellery Purchase"

    @classmethod
    def from_env(cls) -> "CheckoutSettings":
        return cls(
            currency=os.getenv("CHECKOUT_CURRENCY", "INR").upper(),
            tax_rate=Decimal(os.getenv("CHECKOUT_TAX_RATE", "0.18")),
            free_shipping_threshold=Decimal(os.getenv("CHECKOUT_FREE_SHIPPING_THRESHOLD", "4999")),
            shipping_fee=Decimal(os.getenv("CHECKOUT_SHIPPING_FEE", "99")),
            merchant_name=os.getenv("CHECKOUT_MERCHANT_NAME", "SilverQala"),
            merchant_description=os.getenv("CHECKOUT_MERCHANT_DESCRIPTION", "Jewellery Purchase"),
        )


@lru_cache(maxsize=1)
def get_settings() -> CheckoutSettings:
    """Return the process-wide checkout settings."""
    return CheckoutSettings.from_env()
