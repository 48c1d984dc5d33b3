"""Checkout pricing: subtotal, GST, shipping and total for a set of cart lines.

Amounts are computed once, when the order is placed, and stored on the Order.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ordering.checkout.settings import CheckoutSettings, get_settings

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PriceQuote:
    subtotal: Decimal
    tax: Decimal
    shipping_fee: Decimal
    total_amount: Decimal
    currency: str

    def as_dict(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "shipping_fee": float(self.shipping_fee),
            "total_amount": float(self.total_amount),
            "currency": self.currency,
        }


def _round(amount: Decimal) -> Decimal:
    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)


def quote(lines: list[dict], settings: CheckoutSettings | None = None) -> PriceQuote:
    settings = settings or get_settings()

    subtotal = sum(
        (Decimal(str(line["unit_price"])) * int(line["quantity"]) for line in lines),
        Decimal("0"),
    )
    tax = subtotal * settings.tax_rate
    shipping_fee = Decimal("0") if subtotal > settings.free_shipping_threshold else settings.shipping_fee

    subtotal, tax, shipping_fee = _round(subtotal), _round(tax), _round(shipping_fee)
    return PriceQuote(
        subtotal=subtotal,
        tax=tax,
        shipping_fee=shipping_fee,
        total_amount=subtotal + tax + shipping_fee,
        currency=settings.currency,
    )
