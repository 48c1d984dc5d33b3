"""Payment gateway factory.

Provides get/set/reset for the two processor seams:
- ``PaymentGateway``: FakeGateway for development and testing, RazorpayGateway
  when ``PAYMENT_GATEWAY=razorpay``
- ``PaymentCollector``: the widget that takes the payment. Defaults to the
  browser-hosted collector.
"""

import os

from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.hosted_collector import ClientHostedCollector
from payments.gateway.port import GatewayError, PaymentCollector, PaymentGateway  # noqa: F401
from payments.gateway.razorpay_adapter import RazorpayGateway

_current_gateway: PaymentGateway | None = None
_current_collector: PaymentCollector | None = None


def _gateway_from_env() -> PaymentGateway:
    if os.environ.get("PAYMENT_GATEWAY", "fake").lower() == "razorpay":
        return RazorpayGateway(
            functions_url=os.environ["PAYMENT_FUNCTIONS_URL"],
            api_token=os.environ.get("PAYMENT_API_TOKEN", ""),
            key_id=os.environ.get("PAYMENT_KEY_ID"),
            timeout=float(os.environ.get("PAYMENT_TIMEOUT_SECONDS", "10")),
        )
    return FakeGateway()


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, building it from the environment on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = _gateway_from_env()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None


def get_collector() -> PaymentCollector:
    global _current_collector
    if _current_collector is None:
        _current_collector = ClientHostedCollector()
    return _current_collector


def set_collector(collector: PaymentCollector) -> None:
    global _current_collector
    _current_collector = collector


def reset_collector() -> None:
    global _current_collector
    _current_collector = None
