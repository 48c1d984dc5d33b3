"""Razorpay adapter.

Talks to the storefront's serverless payment functions rather than to the
processor directly, so the account secret never leaves the functions host:

- ``POST {functions_url}/create-order`` with ``{amount, currency, receipt}``
  answers ``{id, amount, currency}``.
- ``POST {functions_url}/verify-payment`` with the three ``razorpay_*``
  fields answers ``{success: bool}``.

Both calls carry the caller's bearer token.
"""

from collections.abc import Callable

import httpx
import structlog

from payments.gateway.port import (
    GatewayError,
    PaymentGateway,
    RemoteOrder,
    VerificationResult,
)

logger = structlog.get_logger(__name__)


class RazorpayGateway(PaymentGateway):
    def __init__(
        self,
        functions_url: str,
        api_token: str | Callable[[], str],
        key_id: str | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.functions_url = functions_url.rstrip("/")
        self.key_id = key_id
        self._api_token = api_token
        self._client = client or httpx.Client(timeout=timeout)

    def _headers(self) -> dict[str, str]:
        token = self._api_token() if callable(self._api_token) else self._api_token
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }

    def _post(self, path: str, payload: dict) -> dict:
        url = f"{self.functions_url}/{path}"
        try:
            response = self._client.post(url, json=payload, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.warning("processor_call_rejected", path=path, status_code=status)
            raise GatewayError(
                f"Processor call {path} failed with HTTP {status}",
                retryable=status >= 500,
                status_code=status,
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("processor_unreachable", path=path, error=str(exc))
            raise GatewayError(f"Processor unreachable: {exc}", retryable=True) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError(
                f"Processor call {path} returned a malformed body",
                retryable=False,
                status_code=response.status_code,
            ) from exc

    def create_remote_order(
        self,
        amount_minor_units: int,
        currency: str,
        receipt: str,
    ) -> RemoteOrder:
        body = self._post(
            "create-order",
            {"amount": amount_minor_units, "currency": currency, "receipt": receipt},
        )

        order_ref = body.get("id")
        if not order_ref:
            raise GatewayError("Processor did not return an order id", retryable=False)

        return RemoteOrder(
            processor_order_ref=order_ref,
            amount_minor_units=int(body.get("amount", amount_minor_units)),
            currency=body.get("currency", currency),
            receipt=receipt,
        )

    def verify_payment(
        self,
        payment_id: str,
        processor_order_ref: str,
        signature: str,
    ) -> VerificationResult:
        body = self._post(
            "verify-payment",
            {
                "razorpay_payment_id": payment_id,
                "razorpay_order_id": processor_order_ref,
                "razorpay_signature": signature,
            },
        )

        if body.get("success") is True:
            return VerificationResult(verified=True)
        return VerificationResult(
            verified=False,
            reason=body.get("error") or "Signature mismatch",
        )
