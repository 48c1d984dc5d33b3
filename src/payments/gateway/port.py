"""Payment processor port (abstract interface).

Defines the two seams the checkout saga talks to:

- ``PaymentGateway``: server-to-server calls — create a remote order for an
  amount in minor units, and verify a completed payment's signature.
- ``PaymentCollector``: the payment-collection surface (hosted widget). It is
  opened with a collection request and answers through exactly one of three
  continuations: success, dismiss, or failure.

Adapters (FakeGateway for dev/test, RazorpayGateway for production) can be
swapped without touching domain or application code.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


class GatewayError(Exception):
    """A processor call failed (network error, 4xx or 5xx response)."""

    def __init__(self, message: str, retryable: bool = True, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.retryable = retryable
        self.status_code = status_code


@dataclass(frozen=True)
class RemoteOrder:
    """An order registered with the processor, ready for payment collection."""

    processor_order_ref: str
    amount_minor_units: int  # Amount echoed back by the processor
    currency: str
    receipt: str


@dataclass(frozen=True)
class VerificationResult:
    """The processor's verdict on a payment signature."""

    verified: bool
    reason: str | None = None


@dataclass(frozen=True)
class ContactPrefill:
    name: str = ""
    email: str = ""
    phone: str = ""


@dataclass(frozen=True)
class PaymentCollectionRequest:
    """Everything the collection widget needs to take the payment."""

    processor_order_ref: str
    amount_minor_units: int
    currency: str
    prefill: ContactPrefill
    merchant_name: str = ""
    description: str = ""
    key_id: str | None = None


@dataclass(frozen=True)
class PaymentSuccess:
    payment_id: str
    processor_order_ref: str
    signature: str


@dataclass(frozen=True)
class PaymentFailure:
    reason_code: str
    reason_description: str


@dataclass(frozen=True)
class PaymentContinuations:
    """The three ways control returns from the collection surface."""

    on_success: Callable[[PaymentSuccess], Any]
    on_dismiss: Callable[[], Any]
    on_failure: Callable[[PaymentFailure], Any]


class PaymentGateway(ABC):
    """Abstract payment processor interface."""

    @abstractmethod
    def create_remote_order(
        self,
        amount_minor_units: int,
        currency: str,
        receipt: str,
    ) -> RemoteOrder:
        """Register an order with the processor. Raises GatewayError on failure."""
        ...

    @abstractmethod
    def verify_payment(
        self,
        payment_id: str,
        processor_order_ref: str,
        signature: str,
    ) -> VerificationResult:
        """Ask the processor whether a payment signature is authentic."""
        ...


class PaymentCollector(ABC):
    """Abstract payment-collection surface."""

    @abstractmethod
    def open(self, request: PaymentCollectionRequest, continuations: PaymentContinuations) -> None:
        """Present the collection surface.

        Control comes back later, through exactly one of the continuations.
        """
        ...

    def release(self, processor_order_ref: str) -> None:
        """Forget the collection request once its outcome has been handled."""
