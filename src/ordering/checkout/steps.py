"""Checkout step controller — gates the Shipping → Payment → Confirmation flow.

The controller owns no business data. Each forward move checks a predicate
owned elsewhere (address book, cart, saga) and records the customer's
position on the CheckoutSession. Going back from Payment to Shipping is
always allowed and leaves the orchestration state alone.
"""

from dataclasses import dataclass, field

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.cart.session import CartSession
from ordering.checkout.saga import CheckoutOutcome, CheckoutSaga
from ordering.checkout.session import CheckoutSession, CheckoutStep
from ordering.customer.addresses import AddressBook
from ordering.customer.profile import ensure_address_complete
from ordering.order.order import PaymentMethod
from payments.gateway.port import PaymentFailure, PaymentSuccess

logger = structlog.get_logger(__name__)


@dataclass
class AddressSelection:
    """Either a saved address id or the contents of the new-address form."""

    address_id: str | None = None
    new_address: dict = field(default_factory=dict)


class CheckoutStepController:
    def __init__(self, session_id, saga: CheckoutSaga | None = None):
        self.session_id = str(session_id)
        self.saga = saga or CheckoutSaga()

    @property
    def session(self) -> CheckoutSession:
        return current_domain.repository_for(CheckoutSession).get(self.session_id)

    def _save(self, session) -> CheckoutSession:
        current_domain.repository_for(CheckoutSession).add(session)
        return session

    # -------------------------------------------------------------------
    # Shipping → Payment
    # -------------------------------------------------------------------
    def proceed_to_payment(self, selection: AddressSelection) -> CheckoutSession:
        session = self.session
        if CheckoutStep(session.step) != CheckoutStep.SHIPPING:
            raise ValidationError({"step": [f"Address can only be chosen on the Shipping step, not {session.step}"]})

        if selection.address_id:
            # Raises ObjectNotFoundError for an address that isn't in the book
            AddressBook(session.customer_id).find(selection.address_id)
            session.choose_address(address_id=selection.address_id)
        else:
            ensure_address_complete(selection.new_address)
            session.choose_address(draft_address=selection.new_address)

        session.move_to(CheckoutStep.PAYMENT)
        return self._save(session)

    def return_to_shipping(self) -> CheckoutSession:
        session = self.session
        session.move_to(CheckoutStep.SHIPPING)
        return self._save(session)

    # -------------------------------------------------------------------
    # Payment → Confirmation
    # -------------------------------------------------------------------
    def place_order(self, payment_method) -> CheckoutOutcome:
        session = self.session
        if CheckoutStep(session.step) != CheckoutStep.PAYMENT:
            raise ValidationError({"step": ["Choose a shipping address before placing the order"]})
        if payment_method not in [method.value for method in PaymentMethod]:
            raise ValidationError({"payment_method": [f"Unknown payment method {payment_method}"]})
        if CartSession(session.cart_owner).is_empty:
            raise ValidationError({"cart": ["Your cart is empty"]})

        outcome = self.saga.submit(self.session_id, payment_method, listener=self._on_outcome)
        self._on_outcome(outcome)
        return outcome

    def complete_payment(self, payment: PaymentSuccess) -> CheckoutOutcome:
        return self._on_outcome(self.saga.on_payment_succeeded(self.session_id, payment))

    def dismiss_payment(self) -> CheckoutOutcome:
        return self._on_outcome(self.saga.on_payment_dismissed(self.session_id))

    def fail_payment(self, failure: PaymentFailure) -> CheckoutOutcome:
        return self._on_outcome(self.saga.on_payment_failed(self.session_id, failure))

    def _on_outcome(self, outcome: CheckoutOutcome) -> CheckoutOutcome:
        """Move to Confirmation once the saga has succeeded; otherwise stay on Payment."""
        if outcome.succeeded:
            self.proceed_to_confirmation()
        elif outcome.failed and not outcome.rejected:
            logger.info("checkout_payment_step_retry", session_id=self.session_id, message=outcome.message)
        return outcome

    def proceed_to_confirmation(self) -> CheckoutSession:
        session = self.session
        step = CheckoutStep(session.step)
        if step == CheckoutStep.CONFIRMATION:
            return session
        if step == CheckoutStep.SHIPPING:
            # Customer stepped back while the payment widget was still open
            session.move_to(CheckoutStep.PAYMENT)
        session.move_to(CheckoutStep.CONFIRMATION)
        return self._save(session)
