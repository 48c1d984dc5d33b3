"""Tests for checkout pricing — GST, the free-shipping threshold and rounding."""

from decimal import Decimal

from ordering.checkout.pricing import quote
from ordering.checkout.settings import CheckoutSettings


def _lines(*pairs):
    return [{"unit_price": price, "quantity": qty} for price, qty in pairs]


class TestQuote:
    def test_two_rings_at_500(self):
        result = quote(_lines((500.0, 2)), CheckoutSettings())
        assert result.subtotal == Decimal("1000.00")
        assert result.tax == Decimal("180.00")
        assert result.shipping_fee == Decimal("99.00")
        assert result.total_amount == Decimal("1279.00")
        assert result.currency == "INR"

    def test_shipping_charged_at_threshold(self):
        result = quote(_lines((4999.0, 1)), CheckoutSettings())
        assert result.shipping_fee == Decimal("99.00")

    def test_shipping_free_above_threshold(self):
        result = quote(_lines((5000.0, 1)), CheckoutSettings())
        assert result.shipping_fee == Decimal("0.00")
        assert result.total_amount == Decimal("5900.00")

    def test_tax_rounds_half_up(self):
        result = quote(_lines((10.25, 1)), CheckoutSettings())
        assert result.tax == Decimal("1.85")

    def test_settings_override_rates(self):
        settings = CheckoutSettings(
            currency="USD",
            tax_rate=Decimal("0.10"),
            free_shipping_threshold=Decimal("50"),
            shipping_fee=Decimal("5"),
        )
        result = quote(_lines((20.0, 2)), settings)
        assert result.tax == Decimal("4.00")
        assert result.shipping_fee == Decimal("5.00")
        assert result.total_amount == Decimal("49.00")
        assert result.currency == "USD"

    def test_as_dict_uses_floats(self):
        result = quote(_lines((500.0, 2)), CheckoutSettings()).as_dict()
        assert result == {
            "subtotal": 1000.0,
            "tax": 180.0,
            "shipping_fee": 99.0,
            "total_amount": 1279.0,
            "currency": "INR",
        }


class TestSettingsFromEnv:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("CHECKOUT_CURRENCY", "USD")
        monkeypatch.setenv("CHECKOUT_TAX_RATE", "0.07")
        monkeypatch.setenv("CHECKOUT_FREE_SHIPPING_THRESHOLD", "100")
        monkeypatch.setenv("CHECKOUT_SHIPPING_FEE", "7.5")
        settings = CheckoutSettings.from_env()
        assert settings.currency == "USD"
        assert settings.tax_rate == Decimal("0.07")
        assert settings.free_shipping_threshold == Decimal("100")
        assert settings.shipping_fee == Decimal("7.5")

    def test_defaults(self, monkeypatch):
        for name in (
            "CHECKOUT_CURRENCY",
            "CHECKOUT_TAX_RATE",
            "CHECKOUT_FREE_SHIPPING_THRESHOLD",
            "CHECKOUT_SHIPPING_FEE",
        ):
            monkeypatch.delenv(name, raising=False)
        assert CheckoutSettings.from_env().tax_rate == Decimal("0.18")
