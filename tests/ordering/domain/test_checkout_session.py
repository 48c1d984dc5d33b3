"""Tests for the CheckoutSession aggregate — step navigation and orchestration state."""

import pytest
from ordering.checkout.events import CheckoutFailed, CheckoutSubmitted, CheckoutSucceeded
from ordering.checkout.session import CheckoutBusy, CheckoutSession, CheckoutStep, OrchestrationState
from protean.exceptions import ValidationError


def _submitted(method="Gateway"):
    session = CheckoutSession.start("cust-001")
    session.move_to(CheckoutStep.PAYMENT)
    session.begin_submission(method)
    return session


class TestStart:
    def test_starts_on_shipping_not_started(self):
        session = CheckoutSession.start("cust-001")
        assert session.step == CheckoutStep.SHIPPING.value
        assert session.saga_state == OrchestrationState.NOT_STARTED.value
        assert session.busy is False
        assert session.attempt == 1

    def test_cart_owner_defaults_to_customer(self):
        assert CheckoutSession.start("cust-001").cart_owner == "cust-001"
        assert CheckoutSession.start("cust-001", cart_owner="guest-9").cart_owner == "guest-9"


class TestSteps:
    def test_shipping_to_payment_and_back(self):
        session = CheckoutSession.start("cust-001")
        session.move_to(CheckoutStep.PAYMENT)
        session.move_to(CheckoutStep.SHIPPING)
        assert session.step == CheckoutStep.SHIPPING.value

    def test_cannot_skip_to_confirmation(self):
        session = CheckoutSession.start("cust-001")
        with pytest.raises(ValidationError):
            session.move_to(CheckoutStep.CONFIRMATION)

    def test_confirmation_requires_succeeded_orchestration(self):
        session = CheckoutSession.start("cust-001")
        session.move_to(CheckoutStep.PAYMENT)
        with pytest.raises(ValidationError):
            session.move_to(CheckoutStep.CONFIRMATION)

    def test_confirmation_after_success(self):
        session = _submitted("Cash_On_Delivery")
        session.advance(OrchestrationState.FINALIZING)
        session.attach_order("ord-1", "COD12345678001")
        session.succeed()
        session.move_to(CheckoutStep.CONFIRMATION)
        assert session.step == CheckoutStep.CONFIRMATION.value

    def test_going_back_leaves_orchestration_alone(self):
        session = _submitted()
        session.advance(OrchestrationState.AWAITING_REMOTE_ORDER)
        session.move_to(CheckoutStep.SHIPPING)
        assert session.saga_state == OrchestrationState.AWAITING_REMOTE_ORDER.value
        assert session.busy is True

    def test_draft_address_round_trips_through_json(self):
        session = CheckoutSession.start("cust-001")
        session.choose_address(draft_address={"first_name": "Asha", "line1": "12 MG Road"})
        assert session.draft == {"first_name": "Asha", "line1": "12 MG Road"}
        session.choose_address(address_id="addr-1")
        assert session.draft is None
        assert session.address_id == "addr-1"


class TestSubmission:
    def test_submit_marks_busy_and_creating_order(self):
        session = _submitted()
        assert session.busy is True
        assert session.saga_state == OrchestrationState.CREATING_ORDER.value
        assert session.payment_method == "Gateway"
        assert isinstance(session._events[-1], CheckoutSubmitted)

    def test_second_submit_while_busy_is_rejected(self):
        session = _submitted()
        with pytest.raises(CheckoutBusy):
            session.begin_submission("Gateway")

    def test_cannot_submit_after_success(self):
        session = _submitted("Cash_On_Delivery")
        session.advance(OrchestrationState.FINALIZING)
        session.attach_order("ord-1", "COD12345678001")
        session.succeed()
        with pytest.raises(ValidationError):
            session.begin_submission("Cash_On_Delivery")

    def test_gateway_states_in_order(self):
        session = _submitted()
        for state in (
            OrchestrationState.AWAITING_REMOTE_ORDER,
            OrchestrationState.AWAITING_PAYMENT,
            OrchestrationState.VERIFYING,
        ):
            session.advance(state)
            assert session.busy is True
        session.attach_order("ord-1", "ORD12345678001", "order_123")
        session.succeed()
        assert session.saga_state == OrchestrationState.SUCCEEDED.value
        assert session.busy is False
        assert session.completed_at is not None
        assert isinstance(session._events[-1], CheckoutSucceeded)

    def test_invalid_transition_is_rejected(self):
        session = _submitted()
        with pytest.raises(ValidationError):
            session.advance(OrchestrationState.VERIFYING)


class TestFailure:
    def test_failure_clears_busy_and_records_reason(self):
        session = _submitted()
        session.fail("Payment cancelled.", retryable=True)
        assert session.saga_state == OrchestrationState.FAILED.value
        assert session.busy is False
        assert session.failure_reason == "Payment cancelled."
        assert session.retryable is True
        assert session.attempt == 1
        assert isinstance(session._events[-1], CheckoutFailed)

    def test_settled_failure_advances_attempt(self):
        session = _submitted()
        session.fail("Payment failed: declined", settle_attempt=True)
        assert session.attempt == 2

    def test_failed_session_can_be_resubmitted(self):
        session = _submitted()
        session.fail("Failed to create order. Please try again.")
        session.begin_submission("Gateway")
        assert session.saga_state == OrchestrationState.CREATING_ORDER.value
        assert session.failure_reason is None
        assert session.busy is True
