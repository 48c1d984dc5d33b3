"""Conversion between major currency amounts and processor minor units.

Processors take amounts as integers in the currency's minor unit (paise for
INR, cents for USD). Every conversion goes through ``to_minor_units``.
"""

from decimal import ROUND_HALF_UP, Decimal

_CURRENCY_EXPONENTS = {
    "INR": 2,
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "AED": 2,
    "SGD": 2,
    "JPY": 0,
}


def currency_exponent(currency: str) -> int:
    try:
        return _CURRENCY_EXPONENTS[currency.upper()]
    except KeyError:
        raise ValueError(f"Unsupported currency: {currency}") from None


def to_minor_units(amount, currency: str) -> int:
    """Convert a major-unit amount (e.g. rupees) to minor units (e.g. paise).

    Floats are converted through ``str`` so 1279.1 becomes 127910, not 127909.
    """
    exponent = currency_exponent(currency)
    major = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    minor = (major * (Decimal(10) ** exponent)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(minor)


def from_minor_units(amount_minor_units: int, currency: str) -> Decimal:
    """Convert processor minor units back to a major-unit Decimal."""
    exponent = currency_exponent(currency)
    return Decimal(amount_minor_units) / (Decimal(10) ** exponent)
