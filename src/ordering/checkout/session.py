"""CheckoutSession aggregate — one customer's pass through checkout.

Carries two independent state machines:

Step (what the customer sees):
    SHIPPING ⇄ PAYMENT → CONFIRMATION

Orchestration (what the saga is doing):
    NOT_STARTED → CREATING_ORDER → FINALIZING → SUCCEEDED           (cash on delivery)
    NOT_STARTED → CREATING_ORDER → AWAITING_REMOTE_ORDER
                → AWAITING_PAYMENT → VERIFYING → SUCCEEDED          (gateway)
    any in-flight state → FAILED;  FAILED → CREATING_ORDER (retry)

``busy`` is set on submit and cleared on every terminal transition; a submit
while busy is rejected, never queued.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from ordering.checkout.events import CheckoutFailed, CheckoutSubmitted, CheckoutSucceeded
from ordering.domain import ordering
from ordering.order.order import PaymentMethod


class CheckoutStep(Enum):
    SHIPPING = "Shipping"
    PAYMENT = "Payment"
    CONFIRMATION = "Confirmation"


class OrchestrationState(Enum):
    NOT_STARTED = "Not_Started"
    CREATING_ORDER = "Creating_Order"
    FINALIZING = "Finalizing"
    AWAITING_REMOTE_ORDER = "Awaiting_Remote_Order"
    AWAITING_PAYMENT = "Awaiting_Payment"
    VERIFYING = "Verifying"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


_STEP_TRANSITIONS = {
    CheckoutStep.SHIPPING: {CheckoutStep.PAYMENT},
    CheckoutStep.PAYMENT: {CheckoutStep.SHIPPING, CheckoutStep.CONFIRMATION},
    CheckoutStep.CONFIRMATION: set(),
}

_ORCHESTRATION_TRANSITIONS = {
    OrchestrationState.NOT_STARTED: {OrchestrationState.CREATING_ORDER},
    OrchestrationState.CREATING_ORDER: {
        OrchestrationState.FINALIZING,
        OrchestrationState.AWAITING_REMOTE_ORDER,
        OrchestrationState.FAILED,
    },
    OrchestrationState.FINALIZING: {OrchestrationState.SUCCEEDED, OrchestrationState.FAILED},
    OrchestrationState.AWAITING_REMOTE_ORDER: {OrchestrationState.AWAITING_PAYMENT, OrchestrationState.FAILED},
    OrchestrationState.AWAITING_PAYMENT: {OrchestrationState.VERIFYING, OrchestrationState.FAILED},
    OrchestrationState.VERIFYING: {OrchestrationState.SUCCEEDED, OrchestrationState.FAILED},
    OrchestrationState.SUCCEEDED: set(),
    OrchestrationState.FAILED: {OrchestrationState.CREATING_ORDER},
}

_TERMINAL_STATES = {OrchestrationState.SUCCEEDED, OrchestrationState.FAILED}


class CheckoutBusy(Exception):
    """A submit arrived while an orchestration was already in flight."""


@ordering.aggregate
class CheckoutSession:
    customer_id = Identifier(required=True)
    cart_owner = Identifier(required=True)
    step = String(choices=CheckoutStep, default=CheckoutStep.SHIPPING.value)
    address_id = Identifier()
    draft_address = Text()  # JSON: new-address form contents
    payment_method = String(choices=PaymentMethod)
    saga_state = String(choices=OrchestrationState, default=OrchestrationState.NOT_STARTED.value)
    busy = Boolean(default=False)
    order_id = Identifier()
    order_number = String(max_length=32)
    processor_order_ref = String(max_length=255)
    failure_reason = String(max_length=500)
    retryable = Boolean(default=False)
    attempt = Integer(default=1, min_value=1)
    started_at = DateTime()
    submitted_at = DateTime()
    completed_at = DateTime()

    @classmethod
    def start(cls, customer_id, cart_owner=None):
        return cls(
            customer_id=customer_id,
            cart_owner=cart_owner or customer_id,
            step=CheckoutStep.SHIPPING.value,
            saga_state=OrchestrationState.NOT_STARTED.value,
            started_at=datetime.now(UTC),
        )

    # -------------------------------------------------------------------
    # Step navigation
    # -------------------------------------------------------------------
    def choose_address(self, address_id=None, draft_address=None):
        self.address_id = address_id
        self.draft_address = json.dumps(draft_address) if draft_address else None

    @property
    def draft(self) -> dict | None:
        return json.loads(self.draft_address) if self.draft_address else None

    def move_to(self, target: CheckoutStep):
        current = CheckoutStep(self.step)
        if target not in _STEP_TRANSITIONS[current]:
            raise ValidationError({"step": [f"Cannot move from {current.value} to {target.value}"]})
        if target == CheckoutStep.CONFIRMATION and self.saga_state != OrchestrationState.SUCCEEDED.value:
            raise ValidationError({"step": ["Order has not been placed yet"]})
        self.step = target.value

    # -------------------------------------------------------------------
    # Orchestration state
    # -------------------------------------------------------------------
    @property
    def orchestration(self) -> OrchestrationState:
        return OrchestrationState(self.saga_state)

    def begin_submission(self, payment_method):
        if self.busy:
            raise CheckoutBusy(f"Checkout {self.id} already has an order in flight")
        if self.orchestration not in (OrchestrationState.NOT_STARTED, OrchestrationState.FAILED):
            raise ValidationError({"checkout": [f"Cannot submit from state {self.saga_state}"]})

        now = datetime.now(UTC)
        self.advance(OrchestrationState.CREATING_ORDER)
        self.busy = True
        self.payment_method = payment_method
        self.order_id = None
        self.order_number = None
        self.processor_order_ref = None
        self.failure_reason = None
        self.retryable = False
        self.submitted_at = now
        self.completed_at = None

        self.raise_(
            CheckoutSubmitted(
                session_id=str(self.id),
                customer_id=str(self.customer_id),
                payment_method=payment_method,
                attempt=self.attempt,
                submitted_at=now,
            )
        )

    def advance(self, target: OrchestrationState):
        current = self.orchestration
        if target not in _ORCHESTRATION_TRANSITIONS[current]:
            raise ValidationError(
                {"saga_state": [f"Cannot transition from {current.value} to {target.value}"]}
            )
        self.saga_state = target.value
        if target in _TERMINAL_STATES:
            self.busy = False
            self.completed_at = datetime.now(UTC)

    def attach_order(self, order_id, order_number, processor_order_ref=None):
        self.order_id = order_id
        self.order_number = order_number
        self.processor_order_ref = processor_order_ref

    def succeed(self):
        self.advance(OrchestrationState.SUCCEEDED)
        self.raise_(
            CheckoutSucceeded(
                session_id=str(self.id),
                order_id=str(self.order_id),
                order_number=self.order_number,
                succeeded_at=self.completed_at,
            )
        )

    def fail(self, reason, retryable=True, settle_attempt=False):
        """Move to FAILED.

        ``settle_attempt`` marks the attempt's order as finished (paid-for or
        declined), so the next submit must place a fresh order.
        """
        self.advance(OrchestrationState.FAILED)
        self.failure_reason = reason
        self.retryable = retryable
        if settle_attempt:
            self.attempt += 1
        self.raise_(
            CheckoutFailed(
                session_id=str(self.id),
                order_id=str(self.order_id) if self.order_id else None,
                reason=reason,
                failed_at=self.completed_at,
            )
        )


@ordering.command(part_of="CheckoutSession")
class StartCheckout:
    customer_id = Identifier(required=True)
    cart_owner = Identifier()


@ordering.command_handler(part_of=CheckoutSession)
class StartCheckoutHandler:
    @handle(StartCheckout)
    def start_checkout(self, command):
        session = CheckoutSession.start(command.customer_id, cart_owner=command.cart_owner)
        current_domain.repository_for(CheckoutSession).add(session)
        return str(session.id)
