"""Checkout Saga — turns a cart into a durable order and reconciles the payment outcome.

Coordinates three collaborators in strict sequence: the local order store
(through Ordering commands), the payment processor's server-side API
(``PaymentGateway``) and the payment-collection widget (``PaymentCollector``).
Its progress is recorded on the ``CheckoutSession`` aggregate so that widget
callbacks arriving on later requests pick up where submit left off.

Cash on delivery:
    1. CREATING_ORDER: place a PENDING order
    2. FINALIZING: clear the cart → SUCCEEDED

Gateway:
    1. AWAITING_REMOTE_ORDER: create the processor order (no local row on failure)
    2. place the local PENDING order carrying the processor reference
    3. AWAITING_PAYMENT: open the widget, suspend until one continuation fires
    4a. success → VERIFYING → verified: mark paid, clear cart → SUCCEEDED
                            → rejected: mark failed → FAILED
    4b. dismiss → FAILED, order left PENDING
    4c. failure → mark failed → FAILED

The cart is cleared only on SUCCEEDED. Every failure ends as a
``CheckoutOutcome``; nothing raised by a collaborator escapes the saga.
"""

import hashlib
import json
from collections.abc import Callable
from dataclasses import dataclass

import structlog
from protean.exceptions import ExpectedVersionError, ValidationError
from protean.utils.globals import current_domain

from ordering.cart.session import CartSession
from ordering.checkout.pricing import PriceQuote, quote
from ordering.checkout.session import CheckoutBusy, CheckoutSession, OrchestrationState
from ordering.checkout.settings import CheckoutSettings, get_settings
from ordering.customer.addresses import AddressBook
from ordering.order.numbering import CASH_ON_DELIVERY_PREFIX, GATEWAY_PREFIX, generate_order_number
from ordering.order.order import PaymentMethod
from ordering.order.payment import RecordPaymentFailure, RecordPaymentVerified
from ordering.order.placement import PlaceOrder
from ordering.utils.logging import bind_checkout_context
from payments.gateway import get_collector, get_gateway
from payments.gateway.money import to_minor_units
from payments.gateway.port import (
    ContactPrefill,
    PaymentCollectionRequest,
    PaymentCollector,
    PaymentContinuations,
    PaymentFailure,
    PaymentGateway,
    PaymentSuccess,
)

logger = structlog.get_logger(__name__)

REMOTE_ORDER_FAILED = "Failed to create order. Please try again."
CASH_ON_DELIVERY_FAILED = "Failed to place COD order. Please try again."
PAYMENT_CANCELLED = "Payment cancelled."
PAYMENT_FAILED = "Payment failed: {description}"
VERIFICATION_FAILED = "Payment verification failed. Please contact support."
COLLECTION_FAILED = "Could not open the payment window. Please try again."
ALREADY_PROCESSING = "Your order is already being processed."
UNEXPECTED_FAILURE = "Something went wrong while placing your order. Please try again."

_ORDER_ADDRESS_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "line1",
    "city",
    "state",
    "zip_code",
    "country",
)


@dataclass(frozen=True)
class CheckoutOutcome:
    """What the customer is told after a saga step."""

    session_id: str
    state: str
    order_id: str | None = None
    order_number: str | None = None
    processor_order_ref: str | None = None
    message: str | None = None
    retryable: bool = False
    rejected: bool = False
    payment_request: PaymentCollectionRequest | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == OrchestrationState.SUCCEEDED.value

    @property
    def failed(self) -> bool:
        return self.state == OrchestrationState.FAILED.value

    @property
    def awaiting_payment(self) -> bool:
        return self.state == OrchestrationState.AWAITING_PAYMENT.value


OutcomeListener = Callable[[CheckoutOutcome], None]


def idempotency_key(session, lines, address, payment_method, pricing: PriceQuote) -> str:
    """Key identifying one attempt to buy these exact lines, at these amounts, to this address."""
    canonical = json.dumps(
        {
            "items": lines,
            "address": address,
            "payment_method": payment_method,
            "amounts": pricing.as_dict(),
        },
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    digest = hashlib.sha256(canonical.encode()).hexdigest()[:32]
    return f"{session.id}:{session.attempt}:{digest}"


class CheckoutSaga:
    def __init__(
        self,
        gateway: PaymentGateway | None = None,
        collector: PaymentCollector | None = None,
        settings: CheckoutSettings | None = None,
        cart_factory: Callable[[str], CartSession] = CartSession,
    ):
        self._gateway = gateway
        self._collector = collector
        self._settings = settings
        self._cart_factory = cart_factory

    @property
    def gateway(self) -> PaymentGateway:
        return self._gateway or get_gateway()

    @property
    def collector(self) -> PaymentCollector:
        return self._collector or get_collector()

    @property
    def settings(self) -> CheckoutSettings:
        return self._settings or get_settings()

    # -------------------------------------------------------------------
    # Session bookkeeping
    # -------------------------------------------------------------------
    def _load(self, session_id) -> CheckoutSession:
        return current_domain.repository_for(CheckoutSession).get(session_id)

    def _mutate(self, session_id, change: Callable[[CheckoutSession], None]) -> CheckoutSession:
        """Apply ``change`` to a freshly loaded session and save it straight away."""
        repo = current_domain.repository_for(CheckoutSession)
        session = repo.get(session_id)
        before = session.saga_state
        change(session)
        repo.add(session)

        if session.saga_state != before:
            logger.info(
                "checkout_transition",
                session_id=str(session_id),
                from_state=before,
                to_state=session.saga_state,
                order_id=str(session.order_id) if session.order_id else None,
                busy=session.busy,
            )
        return session

    def _advance(self, session_id, target: OrchestrationState) -> CheckoutSession:
        return self._mutate(session_id, lambda s: s.advance(target))

    def _fail(self, session_id, message, retryable=True, settle_attempt=False) -> CheckoutOutcome:
        session = self._mutate(
            session_id,
            lambda s: s.fail(message, retryable=retryable, settle_attempt=settle_attempt),
        )
        return self._outcome(session)

    def _outcome(self, session, payment_request=None, rejected=False, message=None) -> CheckoutOutcome:
        return CheckoutOutcome(
            session_id=str(session.id),
            state=session.saga_state,
            order_id=str(session.order_id) if session.order_id else None,
            order_number=session.order_number,
            processor_order_ref=session.processor_order_ref,
            message=message or session.failure_reason,
            retryable=bool(session.retryable),
            rejected=rejected,
            payment_request=payment_request,
        )

    def _reject(self, session, event, message, **details) -> CheckoutOutcome:
        logger.warning(event, session_id=str(session.id), saga_state=session.saga_state, **details)
        return self._outcome(session, rejected=True, message=message)

    def _stale(self, session, callback) -> CheckoutOutcome:
        return self._reject(
            session,
            "stale_payment_callback",
            "This payment is no longer awaited.",
            callback=callback,
        )

    def _clear_cart(self, session) -> None:
        self._cart_factory(str(session.cart_owner)).clear()

    def _release(self, processor_order_ref) -> None:
        if not processor_order_ref:
            return
        try:
            self.collector.release(processor_order_ref)
        except Exception as exc:
            logger.warning("payment_widget_release_failed", processor_order_ref=processor_order_ref, error=str(exc))

    # -------------------------------------------------------------------
    # Submit
    # -------------------------------------------------------------------
    def submit(self, session_id, payment_method, listener: OutcomeListener | None = None) -> CheckoutOutcome:
        """Start orchestration for the session's cart, address and ``payment_method``.

        Rejected (not queued) while another submit for the same session is in flight.
        """
        bind_checkout_context(checkout_session=str(session_id))

        try:
            session = self._mutate(session_id, lambda s: s.begin_submission(payment_method))
        except CheckoutBusy:
            return self._reject(self._load(session_id), "checkout_submit_rejected", ALREADY_PROCESSING)
        except ExpectedVersionError:
            # Another submit saved the session between our load and save.
            return self._reject(
                self._load(session_id),
                "checkout_submit_rejected",
                ALREADY_PROCESSING,
                reason="concurrent_submit",
            )
        except ValidationError as exc:
            return self._reject(
                self._load(session_id),
                "checkout_submit_rejected",
                "; ".join(msg for msgs in exc.messages.values() for msg in msgs),
            )

        try:
            lines = self._cart_factory(str(session.cart_owner)).snapshot()
            address = self._shipping_address(session)
            pricing = quote(lines, self.settings)
            key = idempotency_key(session, lines, address, payment_method, pricing)

            if payment_method == PaymentMethod.CASH_ON_DELIVERY.value:
                return self._place_cash_on_delivery(session, lines, address, pricing, key)
            return self._start_gateway_payment(session, lines, address, pricing, key, listener)
        except Exception:
            logger.exception("checkout_orchestration_error", session_id=str(session_id))
            current = self._load(session_id)
            if current.orchestration in (OrchestrationState.SUCCEEDED, OrchestrationState.FAILED):
                return self._outcome(current)
            return self._fail(session_id, UNEXPECTED_FAILURE, retryable=True)

    def _shipping_address(self, session) -> dict:
        if session.address_id:
            address = AddressBook(session.customer_id).find(session.address_id)
        else:
            address = session.draft or {}
        return {field: address.get(field) for field in _ORDER_ADDRESS_FIELDS}

    def _place_order_command(self, session, order_number, lines, address, pricing, key, processor_order_ref=None):
        return PlaceOrder(
            order_number=order_number,
            customer_id=session.customer_id,
            items=json.dumps(lines),
            shipping_address=json.dumps(address),
            payment_method=session.payment_method,
            subtotal=float(pricing.subtotal),
            tax=float(pricing.tax),
            shipping_fee=float(pricing.shipping_fee),
            total_amount=float(pricing.total_amount),
            currency=pricing.currency,
            processor_order_ref=processor_order_ref,
            idempotency_key=key,
        )

    # -------------------------------------------------------------------
    # Cash on delivery
    # -------------------------------------------------------------------
    def _place_cash_on_delivery(self, session, lines, address, pricing, key) -> CheckoutOutcome:
        session_id = str(session.id)
        order_number = generate_order_number(CASH_ON_DELIVERY_PREFIX)

        try:
            order_id = current_domain.process(
                self._place_order_command(session, order_number, lines, address, pricing, key),
                asynchronous=False,
            )
        except Exception as exc:
            logger.error("order_insert_failed", session_id=session_id, order_number=order_number, error=str(exc))
            return self._fail(session_id, CASH_ON_DELIVERY_FAILED, retryable=True)

        def finalize(s):
            s.attach_order(order_id, order_number)
            s.advance(OrchestrationState.FINALIZING)

        session = self._mutate(session_id, finalize)
        self._clear_cart(session)
        session = self._mutate(session_id, lambda s: s.succeed())
        return self._outcome(session)

    # -------------------------------------------------------------------
    # Gateway
    # -------------------------------------------------------------------
    def _start_gateway_payment(self, session, lines, address, pricing, key, listener) -> CheckoutOutcome:
        session_id = str(session.id)
        order_number = generate_order_number(GATEWAY_PREFIX)
        gateway = self.gateway

        self._advance(session_id, OrchestrationState.AWAITING_REMOTE_ORDER)

        # Step 1: the processor order comes first; no local row if it fails.
        amount_minor_units = to_minor_units(pricing.total_amount, pricing.currency)
        try:
            remote = gateway.create_remote_order(amount_minor_units, pricing.currency, receipt=order_number)
        except Exception as exc:
            logger.warning(
                "remote_order_failed",
                session_id=session_id,
                order_number=order_number,
                amount_minor_units=amount_minor_units,
                error=str(exc),
            )
            return self._fail(session_id, REMOTE_ORDER_FAILED, retryable=getattr(exc, "retryable", True))

        # Step 2: local PENDING order carrying the processor reference.
        try:
            order_id = current_domain.process(
                self._place_order_command(
                    session,
                    order_number,
                    lines,
                    address,
                    pricing,
                    key,
                    processor_order_ref=remote.processor_order_ref,
                ),
                asynchronous=False,
            )
        except Exception as exc:
            logger.error(
                "orphan_remote_order",
                reconciliation_gap="orphan_remote_order",
                session_id=session_id,
                order_number=order_number,
                processor_order_ref=remote.processor_order_ref,
                error=str(exc),
            )
            return self._fail(session_id, REMOTE_ORDER_FAILED, retryable=True)

        # Step 3: record the suspension point before handing control to the widget.
        def await_payment(s):
            s.attach_order(order_id, order_number, remote.processor_order_ref)
            s.advance(OrchestrationState.AWAITING_PAYMENT)

        self._mutate(session_id, await_payment)

        request = PaymentCollectionRequest(
            processor_order_ref=remote.processor_order_ref,
            amount_minor_units=remote.amount_minor_units,
            currency=remote.currency,
            prefill=ContactPrefill(
                name=" ".join(p for p in (address.get("first_name"), address.get("last_name")) if p),
                email=address.get("email") or "",
                phone=address.get("phone") or "",
            ),
            merchant_name=self.settings.merchant_name,
            description=self.settings.merchant_description,
            key_id=getattr(gateway, "key_id", None),
        )

        try:
            self.collector.open(request, self._continuations(session_id, listener))
        except Exception as exc:
            logger.error("payment_widget_failed", session_id=session_id, error=str(exc))
            self._release(remote.processor_order_ref)
            if self._load(session_id).orchestration == OrchestrationState.AWAITING_PAYMENT:
                return self._fail(session_id, COLLECTION_FAILED, retryable=True)

        # The widget may already have answered; report the session as it is now.
        return self._outcome(self._load(session_id), payment_request=request)

    def _continuations(self, session_id, listener) -> PaymentContinuations:
        def notify(outcome):
            if listener is not None:
                listener(outcome)
            return outcome

        return PaymentContinuations(
            on_success=lambda payment: notify(self.on_payment_succeeded(session_id, payment)),
            on_dismiss=lambda: notify(self.on_payment_dismissed(session_id)),
            on_failure=lambda failure: notify(self.on_payment_failed(session_id, failure)),
        )

    # -------------------------------------------------------------------
    # Collection continuations
    # -------------------------------------------------------------------
    def on_payment_succeeded(self, session_id, payment: PaymentSuccess) -> CheckoutOutcome:
        bind_checkout_context(checkout_session=str(session_id))
        session = self._load(session_id)

        if session.orchestration == OrchestrationState.SUCCEEDED:
            return self._confirm_again(session, payment)
        if session.orchestration != OrchestrationState.AWAITING_PAYMENT:
            return self._stale(session, "success")

        try:
            session = self._advance(session_id, OrchestrationState.VERIFYING)
        except ExpectedVersionError:
            # A concurrent callback for the same payment got there first.
            return self._stale(self._load(session_id), "success")

        try:
            return self._settle_payment(session, payment)
        except Exception:
            logger.exception("payment_confirmation_error", session_id=str(session_id))
            return self._fail(session_id, VERIFICATION_FAILED, retryable=False, settle_attempt=True)
        finally:
            self._release(session.processor_order_ref)

    def _settle_payment(self, session, payment: PaymentSuccess) -> CheckoutOutcome:
        session_id = str(session.id)
        verified, reason = self._verify(session, payment)

        if not verified:
            logger.warning(
                "payment_verification_mismatch",
                session_id=session_id,
                order_id=str(session.order_id),
                processor_order_ref=session.processor_order_ref,
                payment_id=payment.payment_id,
                reason=reason,
            )
            self._record_failure(session, f"Verification failed: {reason}")
            return self._fail(session_id, VERIFICATION_FAILED, retryable=False, settle_attempt=True)

        try:
            current_domain.process(
                RecordPaymentVerified(
                    order_id=session.order_id,
                    processor_payment_ref=payment.payment_id,
                    processor_signature=payment.signature,
                ),
                asynchronous=False,
            )
        except Exception as exc:
            logger.error(
                "paid_order_not_recorded",
                reconciliation_gap="paid_order_not_recorded",
                session_id=session_id,
                order_id=str(session.order_id),
                payment_id=payment.payment_id,
                error=str(exc),
            )
            return self._fail(session_id, VERIFICATION_FAILED, retryable=False, settle_attempt=True)

        self._clear_cart(session)
        session = self._mutate(session_id, lambda s: s.succeed())
        return self._outcome(session)

    def _verify(self, session, payment: PaymentSuccess) -> tuple[bool, str | None]:
        if payment.processor_order_ref != session.processor_order_ref:
            return False, f"Order reference {payment.processor_order_ref} does not match"
        try:
            result = self.gateway.verify_payment(
                payment.payment_id,
                session.processor_order_ref,
                payment.signature,
            )
        except Exception as exc:
            return False, str(exc)
        return result.verified, result.reason

    def _confirm_again(self, session, payment: PaymentSuccess) -> CheckoutOutcome:
        """A repeated success callback for a finished checkout: re-verify and overwrite."""
        verified, reason = self._verify(session, payment)
        if not verified:
            return self._reject(
                session,
                "duplicate_payment_callback_rejected",
                VERIFICATION_FAILED,
                payment_id=payment.payment_id,
                reason=reason,
            )

        try:
            current_domain.process(
                RecordPaymentVerified(
                    order_id=session.order_id,
                    processor_payment_ref=payment.payment_id,
                    processor_signature=payment.signature,
                ),
                asynchronous=False,
            )
        except Exception as exc:
            logger.error("duplicate_payment_not_recorded", session_id=str(session.id), error=str(exc))
        logger.info("duplicate_payment_callback", session_id=str(session.id), payment_id=payment.payment_id)
        return self._outcome(session)

    def _record_failure(self, session, reason) -> None:
        try:
            current_domain.process(
                RecordPaymentFailure(order_id=session.order_id, reason=reason[:500]),
                asynchronous=False,
            )
        except Exception as exc:
            logger.error(
                "payment_failure_not_recorded",
                reconciliation_gap="unrecorded_payment_failure",
                session_id=str(session.id),
                order_id=str(session.order_id),
                error=str(exc),
            )

    def on_payment_dismissed(self, session_id) -> CheckoutOutcome:
        bind_checkout_context(checkout_session=str(session_id))
        session = self._load(session_id)
        if session.orchestration != OrchestrationState.AWAITING_PAYMENT:
            return self._stale(session, "dismiss")

        try:
            outcome = self._fail(session_id, PAYMENT_CANCELLED, retryable=True)
        except ExpectedVersionError:
            return self._stale(self._load(session_id), "dismiss")
        finally:
            self._release(session.processor_order_ref)

        logger.warning(
            "payment_dismissed",
            reconciliation_gap="dangling_pending_order",
            session_id=str(session_id),
            order_id=str(session.order_id),
            processor_order_ref=session.processor_order_ref,
        )
        return outcome

    def on_payment_failed(self, session_id, failure: PaymentFailure) -> CheckoutOutcome:
        bind_checkout_context(checkout_session=str(session_id))
        session = self._load(session_id)
        if session.orchestration != OrchestrationState.AWAITING_PAYMENT:
            return self._stale(session, "failure")

        try:
            outcome = self._fail(
                session_id,
                PAYMENT_FAILED.format(description=failure.reason_description),
                retryable=True,
                settle_attempt=True,
            )
        except ExpectedVersionError:
            return self._stale(self._load(session_id), "failure")
        finally:
            self._release(session.processor_order_ref)

        logger.info(
            "payment_declined",
            session_id=str(session_id),
            order_id=str(session.order_id),
            reason_code=failure.reason_code,
        )
        self._record_failure(session, failure.reason_description or failure.reason_code)
        return outcome
