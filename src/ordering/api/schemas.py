"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands and aggregates. Address fields are optional here
so that incomplete forms reach the domain and get its validation message.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class CartItemSchema(BaseModel):
    product_id: str
    name: str
    unit_price: float
    image_ref: str | None = None
    quantity: int


class CartResponse(BaseModel):
    owner_key: str
    items: list[CartItemSchema]
    total_price: float
    total_items: int
    is_open: bool = False
    degraded: bool = False


class AddToCartRequest(BaseModel):
    product_id: str
    name: str
    unit_price: float = Field(ge=0)
    image_ref: str | None = None


# ---------------------------------------------------------------------------
# Address Book
# ---------------------------------------------------------------------------
class AddressRequest(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    line1: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None


class AddressResponse(AddressRequest):
    id: str
    is_default: bool = False


class AddressIdResponse(BaseModel):
    address_id: str


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class StartCheckoutRequest(BaseModel):
    customer_id: str
    cart_owner: str | None = None  # Defaults to the customer id


class SessionIdResponse(BaseModel):
    session_id: str


class CheckoutSessionResponse(BaseModel):
    session_id: str
    customer_id: str
    cart_owner: str
    step: str
    saga_state: str
    busy: bool
    address_id: str | None = None
    payment_method: str | None = None
    order_id: str | None = None
    order_number: str | None = None
    processor_order_ref: str | None = None
    failure_reason: str | None = None
    attempt: int


class ShippingRequest(BaseModel):
    address_id: str | None = None
    new_address: AddressRequest | None = None


class SubmitOrderRequest(BaseModel):
    payment_method: str = Field(description="Gateway or Cash_On_Delivery")


class ContactPrefillSchema(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""


class PaymentRequestSchema(BaseModel):
    processor_order_ref: str
    amount_minor_units: int
    currency: str
    key_id: str | None = None
    merchant_name: str = ""
    description: str = ""
    prefill: ContactPrefillSchema


class CheckoutOutcomeResponse(BaseModel):
    session_id: str
    state: str
    order_id: str | None = None
    order_number: str | None = None
    processor_order_ref: str | None = None
    message: str | None = None
    retryable: bool = False
    payment_request: PaymentRequestSchema | None = None


class PaymentSuccessRequest(BaseModel):
    payment_id: str
    processor_order_ref: str
    signature: str


class PaymentFailureRequest(BaseModel):
    reason_code: str = ""
    reason_description: str = ""


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderItemSchema(BaseModel):
    product_id: str
    name: str
    unit_price: float
    image_ref: str | None = None
    quantity: int


class OrderReceiptResponse(BaseModel):
    id: str
    order_number: str
    customer_id: str
    status: str
    payment_status: str
    payment_method: str
    processor_order_ref: str | None = None
    processor_payment_ref: str | None = None
    items: list[OrderItemSchema]
    shipping_address: AddressRequest | None = None
    subtotal: float
    tax: float
    shipping_fee: float
    total_amount: float
    currency: str
    created_at: datetime | None = None
