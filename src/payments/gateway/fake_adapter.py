"""Configurable fake payment processor for development and testing.

This adapter simulates a Razorpay-style processor without any external calls.
It can be configured at runtime to fail order creation or to override the
verification verdict, making it useful for:
- Manual API testing via /payments/gateway/configure
- Automated tests with predictable outcomes
- Development without real processor credentials

Signatures follow the processor's scheme: HMAC-SHA256 over
``"<order_ref>|<payment_id>"`` keyed with the account secret. ``sign()``
produces a valid one for tests.
"""

import hashlib
import hmac
from uuid import uuid4

from payments.gateway.port import (
    GatewayError,
    PaymentCollectionRequest,
    PaymentCollector,
    PaymentContinuations,
    PaymentFailure,
    PaymentGateway,
    PaymentSuccess,
    RemoteOrder,
    VerificationResult,
)


class FakeGateway(PaymentGateway):
    """Configurable fake payment processor."""

    def __init__(self, secret: str = "fake_processor_secret") -> None:
        self.secret = secret
        self.create_order_should_succeed: bool = True
        self.verify_should_succeed: bool | None = None  # None: check the HMAC
        self.failure_reason: str = "Processor unavailable"
        self.next_order_ref: str | None = None
        self.calls: list[dict] = []

    def configure(
        self,
        create_order_should_succeed: bool = True,
        verify_should_succeed: bool | None = None,
        failure_reason: str = "Processor unavailable",
        next_order_ref: str | None = None,
    ) -> None:
        """Configure processor behavior at runtime."""
        self.create_order_should_succeed = create_order_should_succeed
        self.verify_should_succeed = verify_should_succeed
        self.failure_reason = failure_reason
        self.next_order_ref = next_order_ref

    def sign(self, processor_order_ref: str, payment_id: str) -> str:
        message = f"{processor_order_ref}|{payment_id}".encode()
        return hmac.new(self.secret.encode(), message, hashlib.sha256).hexdigest()

    def create_remote_order(
        self,
        amount_minor_units: int,
        currency: str,
        receipt: str,
    ) -> RemoteOrder:
        self.calls.append(
            {
                "method": "create_remote_order",
                "amount_minor_units": amount_minor_units,
                "currency": currency,
                "receipt": receipt,
            }
        )

        if not self.create_order_should_succeed:
            raise GatewayError(self.failure_reason, retryable=True, status_code=503)

        order_ref = self.next_order_ref or f"order_{uuid4().hex[:14]}"
        self.next_order_ref = None
        return RemoteOrder(
            processor_order_ref=order_ref,
            amount_minor_units=amount_minor_units,
            currency=currency,
            receipt=receipt,
        )

    def verify_payment(
        self,
        payment_id: str,
        processor_order_ref: str,
        signature: str,
    ) -> VerificationResult:
        self.calls.append(
            {
                "method": "verify_payment",
                "payment_id": payment_id,
                "processor_order_ref": processor_order_ref,
                "signature": signature,
            }
        )

        if self.verify_should_succeed is not None:
            return VerificationResult(
                verified=self.verify_should_succeed,
                reason=None if self.verify_should_succeed else "Signature mismatch",
            )

        expected = self.sign(processor_order_ref, payment_id)
        if hmac.compare_digest(expected, signature or ""):
            return VerificationResult(verified=True)
        return VerificationResult(verified=False, reason="Signature mismatch")

    def calls_to(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]


class FakeCollector(PaymentCollector):
    """Scriptable stand-in for the hosted payment widget.

    In ``manual`` mode the widget stays open until a test drives it with
    ``complete()``, ``dismiss()`` or ``fail()``. The other modes answer
    immediately from inside ``open()``, the way a customer who pays (or
    closes the widget) straight away would.
    """

    MODES = ("manual", "succeed", "dismiss", "fail")

    def __init__(self, gateway: FakeGateway | None = None, mode: str = "manual") -> None:
        if mode not in self.MODES:
            raise ValueError(f"Unknown collector mode: {mode}")
        self.gateway = gateway or FakeGateway()
        self.mode = mode
        self.requests: list[PaymentCollectionRequest] = []
        self._continuations: PaymentContinuations | None = None

    @property
    def is_open(self) -> bool:
        return self._continuations is not None

    @property
    def last_request(self) -> PaymentCollectionRequest | None:
        return self.requests[-1] if self.requests else None

    def open(self, request: PaymentCollectionRequest, continuations: PaymentContinuations) -> None:
        self.requests.append(request)
        self._continuations = continuations

        if self.mode == "succeed":
            self.complete()
        elif self.mode == "dismiss":
            self.dismiss()
        elif self.mode == "fail":
            self.fail()

    def _take(self) -> PaymentContinuations:
        if self._continuations is None:
            raise RuntimeError("Payment widget is not open")
        continuations, self._continuations = self._continuations, None
        return continuations

    def complete(self, payment_id: str | None = None, signature: str | None = None):
        request = self.last_request
        continuations = self._take()
        payment_id = payment_id or f"pay_{uuid4().hex[:14]}"
        if signature is None:
            signature = self.gateway.sign(request.processor_order_ref, payment_id)
        return continuations.on_success(
            PaymentSuccess(
                payment_id=payment_id,
                processor_order_ref=request.processor_order_ref,
                signature=signature,
            )
        )

    def dismiss(self):
        return self._take().on_dismiss()

    def fail(self, reason_code: str = "BAD_REQUEST_ERROR", reason_description: str = "Payment declined by bank"):
        return self._take().on_failure(
            PaymentFailure(reason_code=reason_code, reason_description=reason_description)
        )
