"""Order aggregate — the durable, store-authoritative record of a checkout attempt.

An order is created once, in PENDING/PENDING, before any money moves. Items,
shipping address and amounts are copied in at placement and never re-derived,
so later changes to the cart or address book cannot alter a placed order.

Order status:
    PENDING → PROCESSING → SHIPPED → DELIVERED → RETURNED
    PENDING → FAILED
    PENDING / PROCESSING → CANCELLED

Payment status:
    PENDING → PAID
    PENDING → FAILED

Shipping, delivery, return and cancellation are driven by the admin surface;
checkout only moves orders out of PENDING.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from ordering.domain import ordering
from ordering.order.events import OrderPaymentConfirmed, OrderPaymentFailed, OrderPlaced


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    RETURNED = "Returned"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


class PaymentStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"


class PaymentMethod(Enum):
    GATEWAY = "Gateway"
    CASH_ON_DELIVERY = "Cash_On_Delivery"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.FAILED, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.RETURNED: set(),  # Terminal
    OrderStatus.FAILED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

_ADDRESS_FIELDS = (
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


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class ShippingAddress:
    """The delivery address as it was when the order was placed.

    Copied out of the address book (or the new-address form) at checkout;
    editing the saved address later does not touch this copy.
    """

    first_name = String(required=True, max_length=100)
    last_name = String(max_length=100)
    email = String(required=True, max_length=254)
    phone = String(required=True, max_length=20)
    line1 = String(required=True, max_length=255)
    city = String(max_length=100)
    state = String(max_length=100)
    zip_code = String(max_length=20)
    country = String(max_length=100)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A cart line frozen into the order."""

    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    image_ref = String(max_length=1024)
    quantity = Integer(required=True, min_value=1)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=32, unique=True)
    customer_id = Identifier(required=True)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress)
    payment_method = String(choices=PaymentMethod, required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    subtotal = Float(required=True, min_value=0.0)
    tax = Float(default=0.0)
    shipping_fee = Float(default=0.0)
    total_amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="INR")
    processor_order_ref = String(max_length=255)
    processor_payment_ref = String(max_length=255)
    processor_signature = String(max_length=512)
    idempotency_key = String(max_length=128)
    failure_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        customer_id,
        items_data,
        shipping_address,
        payment_method,
        pricing,
        processor_order_ref=None,
        idempotency_key=None,
    ):
        if not items_data:
            raise ValidationError({"items": ["Cannot place an order for an empty cart"]})

        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            shipping_address=ShippingAddress(**{k: v for k, v in shipping_address.items() if k in _ADDRESS_FIELDS}),
            payment_method=payment_method,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            subtotal=pricing["subtotal"],
            tax=pricing.get("tax", 0.0),
            shipping_fee=pricing.get("shipping_fee", 0.0),
            total_amount=pricing["total_amount"],
            currency=pricing.get("currency", "INR"),
            processor_order_ref=processor_order_ref,
            idempotency_key=idempotency_key,
            created_at=now,
            updated_at=now,
        )
        for line in items_data:
            order.add_items(
                OrderItem(
                    product_id=line["product_id"],
                    name=line["name"],
                    unit_price=line["unit_price"],
                    image_ref=line.get("image_ref"),
                    quantity=line["quantity"],
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                payment_method=payment_method,
                processor_order_ref=processor_order_ref,
                total_amount=order.total_amount,
                currency=order.currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    @property
    def awaiting_payment(self) -> bool:
        return self.status == OrderStatus.PENDING.value and self.payment_status == PaymentStatus.PENDING.value

    # -------------------------------------------------------------------
    # Checkout-driven changes
    # -------------------------------------------------------------------
    def reattach(self, order_number, processor_order_ref=None):
        """Point a still-unpaid order at a new checkout attempt's identifiers."""
        if not self.awaiting_payment:
            raise ValidationError({"order": ["Only an unpaid pending order can be re-used"]})
        self.order_number = order_number
        self.processor_order_ref = processor_order_ref
        self.updated_at = datetime.now(UTC)

    def mark_paid(self, processor_payment_ref, processor_signature):
        """Record a verified payment.

        A repeat confirmation for an already-paid order overwrites the
        processor references without raising a second event.
        """
        repeat = self.payment_status == PaymentStatus.PAID.value
        if not repeat:
            if self.payment_status != PaymentStatus.PENDING.value:
                raise ValidationError({"payment_status": [f"Cannot record payment on a {self.payment_status} order"]})
            self._assert_can_transition(OrderStatus.PROCESSING)

        now = datetime.now(UTC)
        self.processor_payment_ref = processor_payment_ref
        self.processor_signature = processor_signature
        self.updated_at = now
        if repeat:
            return

        self.payment_status = PaymentStatus.PAID.value
        self.status = OrderStatus.PROCESSING.value
        self.failure_reason = None
        self.raise_(
            OrderPaymentConfirmed(
                order_id=str(self.id),
                order_number=self.order_number,
                processor_order_ref=self.processor_order_ref,
                processor_payment_ref=processor_payment_ref,
                confirmed_at=now,
            )
        )

    def mark_payment_failed(self, reason):
        repeat = self.payment_status == PaymentStatus.FAILED.value
        if not repeat:
            if self.payment_status != PaymentStatus.PENDING.value:
                raise ValidationError({"payment_status": [f"Cannot fail payment on a {self.payment_status} order"]})
            self._assert_can_transition(OrderStatus.FAILED)

        now = datetime.now(UTC)
        self.failure_reason = reason
        self.updated_at = now
        if repeat:
            return

        self.payment_status = PaymentStatus.FAILED.value
        self.status = OrderStatus.FAILED.value
        self.raise_(
            OrderPaymentFailed(
                order_id=str(self.id),
                order_number=self.order_number,
                reason=reason,
                failed_at=now,
            )
        )

    def to_receipt(self) -> dict:
        """Stored snapshot of the order, as rendered on the confirmation page."""
        address = self.shipping_address
        return {
            "id": str(self.id),
            "order_number": self.order_number,
            "customer_id": str(self.customer_id),
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "processor_order_ref": self.processor_order_ref,
            "processor_payment_ref": self.processor_payment_ref,
            "items": [
                {
                    "product_id": str(item.product_id),
                    "name": item.name,
                    "unit_price": item.unit_price,
                    "image_ref": item.image_ref,
                    "quantity": item.quantity,
                }
                for item in self.items
            ],
            "shipping_address": {
                "first_name": address.first_name,
                "last_name": address.last_name,
                "email": address.email,
                "phone": address.phone,
                "line1": address.line1,
                "city": address.city,
                "state": address.state,
                "zip_code": address.zip_code,
                "country": address.country,
            }
            if address
            else None,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "shipping_fee": self.shipping_fee,
            "total_amount": self.total_amount,
            "currency": self.currency,
            "created_at": self.created_at,
        }


@ordering.repository(part_of=Order)
class OrderRepository:
    """Order lookups beyond get-by-id."""

    def _first(self, **filters):
        results = self._dao.query.filter(**filters).all().items
        return results[0] if results else None

    def find_by_order_number(self, order_number) -> Order | None:
        return self._first(order_number=order_number)

    def find_by_processor_order_ref(self, processor_order_ref) -> Order | None:
        return self._first(processor_order_ref=processor_order_ref)

    def find_by_idempotency_key(self, idempotency_key) -> Order | None:
        return self._first(idempotency_key=idempotency_key)

    def list_for_customer(self, customer_id) -> list[Order]:
        orders = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return sorted(orders, key=lambda o: o.created_at, reverse=True)
