"""FastAPI routes for the Ordering domain — carts, addresses, checkout and orders."""

from dataclasses import asdict

from fastapi import APIRouter, HTTPException
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    AddressIdResponse,
    AddressRequest,
    AddressResponse,
    AddToCartRequest,
    CartResponse,
    CheckoutOutcomeResponse,
    CheckoutSessionResponse,
    OrderReceiptResponse,
    PaymentFailureRequest,
    PaymentSuccessRequest,
    SessionIdResponse,
    ShippingRequest,
    StartCheckoutRequest,
    SubmitOrderRequest,
)
from ordering.cart.session import CartSession
from ordering.checkout.saga import CheckoutOutcome
from ordering.checkout.session import CheckoutSession, StartCheckout
from ordering.checkout.steps import AddressSelection, CheckoutStepController
from ordering.customer.addresses import AddAddress, AddressBook
from ordering.order.confirmation import OrderConfirmationReader, order_history
from payments.gateway.port import PaymentFailure, PaymentSuccess


def _cart_response(cart: CartSession) -> CartResponse:
    totals = cart.totals()
    return CartResponse(
        owner_key=cart.owner_key,
        items=cart.snapshot(),
        total_price=float(totals.total_price),
        total_items=totals.total_items,
        is_open=cart.is_open,
        degraded=cart.degraded,
    )


def _session_response(session: CheckoutSession) -> CheckoutSessionResponse:
    return CheckoutSessionResponse(
        session_id=str(session.id),
        customer_id=str(session.customer_id),
        cart_owner=str(session.cart_owner),
        step=session.step,
        saga_state=session.saga_state,
        busy=bool(session.busy),
        address_id=str(session.address_id) if session.address_id else None,
        payment_method=session.payment_method,
        order_id=str(session.order_id) if session.order_id else None,
        order_number=session.order_number,
        processor_order_ref=session.processor_order_ref,
        failure_reason=session.failure_reason,
        attempt=session.attempt,
    )


def _outcome_response(outcome: CheckoutOutcome) -> CheckoutOutcomeResponse:
    if outcome.rejected:
        raise HTTPException(status_code=409, detail=outcome.message)
    return CheckoutOutcomeResponse(
        session_id=outcome.session_id,
        state=outcome.state,
        order_id=outcome.order_id,
        order_number=outcome.order_number,
        processor_order_ref=outcome.processor_order_ref,
        message=outcome.message,
        retryable=outcome.retryable,
        payment_request=asdict(outcome.payment_request) if outcome.payment_request else None,
    )


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.get("/{owner_key}", response_model=CartResponse)
async def get_cart(owner_key: str) -> CartResponse:
    return _cart_response(CartSession(owner_key))


@cart_router.delete("/{owner_key}", response_model=CartResponse)
async def clear_cart(owner_key: str) -> CartResponse:
    cart = CartSession(owner_key)
    cart.clear()
    return _cart_response(cart)


@cart_router.post("/{owner_key}/items", response_model=CartResponse)
async def add_cart_item(owner_key: str, body: AddToCartRequest) -> CartResponse:
    """Add one unit of a product; the cart drawer opens."""
    cart = CartSession(owner_key)
    cart.add(body.product_id, body.name, body.unit_price, image_ref=body.image_ref)
    return _cart_response(cart)


@cart_router.delete("/{owner_key}/items/{product_id}", response_model=CartResponse)
async def remove_cart_item(owner_key: str, product_id: str) -> CartResponse:
    cart = CartSession(owner_key)
    cart.remove(product_id)
    return _cart_response(cart)


@cart_router.post("/{owner_key}/items/{product_id}/increment", response_model=CartResponse)
async def increment_cart_item(owner_key: str, product_id: str) -> CartResponse:
    cart = CartSession(owner_key)
    cart.increment(product_id)
    return _cart_response(cart)


@cart_router.post("/{owner_key}/items/{product_id}/decrement", response_model=CartResponse)
async def decrement_cart_item(owner_key: str, product_id: str) -> CartResponse:
    cart = CartSession(owner_key)
    cart.decrement(product_id)
    return _cart_response(cart)


# ---------------------------------------------------------------------------
# Address Book Router
# ---------------------------------------------------------------------------
address_router = APIRouter(prefix="/customers", tags=["addresses"])


@address_router.get("/{customer_id}/addresses", response_model=list[AddressResponse])
async def list_addresses(customer_id: str) -> list[AddressResponse]:
    return [AddressResponse(**address) for address in AddressBook(customer_id).list()]


@address_router.post("/{customer_id}/addresses", status_code=201, response_model=AddressIdResponse)
async def add_address(customer_id: str, body: AddressRequest) -> AddressIdResponse:
    command = AddAddress(customer_id=customer_id, **body.model_dump(exclude_none=True))
    address_id = current_domain.process(command, asynchronous=False)
    return AddressIdResponse(address_id=address_id)


@address_router.get("/{customer_id}/orders", response_model=list[OrderReceiptResponse])
async def list_orders(customer_id: str) -> list[OrderReceiptResponse]:
    """Order history, newest first."""
    return [OrderReceiptResponse(**receipt) for receipt in order_history(customer_id)]


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=SessionIdResponse)
async def start_checkout(body: StartCheckoutRequest) -> SessionIdResponse:
    command = StartCheckout(customer_id=body.customer_id, cart_owner=body.cart_owner)
    session_id = current_domain.process(command, asynchronous=False)
    return SessionIdResponse(session_id=session_id)


@checkout_router.get("/{session_id}", response_model=CheckoutSessionResponse)
async def get_checkout(session_id: str) -> CheckoutSessionResponse:
    return _session_response(CheckoutStepController(session_id).session)


@checkout_router.put("/{session_id}/shipping", response_model=CheckoutSessionResponse)
async def choose_shipping(session_id: str, body: ShippingRequest) -> CheckoutSessionResponse:
    selection = AddressSelection(
        address_id=body.address_id,
        new_address=body.new_address.model_dump(exclude_none=True) if body.new_address else {},
    )
    session = CheckoutStepController(session_id).proceed_to_payment(selection)
    return _session_response(session)


@checkout_router.put("/{session_id}/back", response_model=CheckoutSessionResponse)
async def back_to_shipping(session_id: str) -> CheckoutSessionResponse:
    return _session_response(CheckoutStepController(session_id).return_to_shipping())


@checkout_router.post("/{session_id}/submit", response_model=CheckoutOutcomeResponse)
def submit_order(session_id: str, body: SubmitOrderRequest) -> CheckoutOutcomeResponse:
    """Place the order. For gateway payments the response carries the widget request."""
    outcome = CheckoutStepController(session_id).place_order(body.payment_method)
    return _outcome_response(outcome)


@checkout_router.post("/{session_id}/payment/success", response_model=CheckoutOutcomeResponse)
def payment_succeeded(session_id: str, body: PaymentSuccessRequest) -> CheckoutOutcomeResponse:
    payment = PaymentSuccess(
        payment_id=body.payment_id,
        processor_order_ref=body.processor_order_ref,
        signature=body.signature,
    )
    return _outcome_response(CheckoutStepController(session_id).complete_payment(payment))


@checkout_router.post("/{session_id}/payment/dismiss", response_model=CheckoutOutcomeResponse)
def payment_dismissed(session_id: str) -> CheckoutOutcomeResponse:
    return _outcome_response(CheckoutStepController(session_id).dismiss_payment())


@checkout_router.post("/{session_id}/payment/failure", response_model=CheckoutOutcomeResponse)
def payment_failed(session_id: str, body: PaymentFailureRequest) -> CheckoutOutcomeResponse:
    failure = PaymentFailure(reason_code=body.reason_code, reason_description=body.reason_description)
    return _outcome_response(CheckoutStepController(session_id).fail_payment(failure))


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("/confirmation/{reference}", response_model=OrderReceiptResponse)
async def order_confirmation(reference: str) -> OrderReceiptResponse:
    """Look up a finished order by id, order number or processor order reference."""
    return OrderReceiptResponse(**OrderConfirmationReader().resolve(reference))
