"""Cart aggregate — the customer's selection of products, held client-side.

The cart is never stored as an aggregate row. Its lines are saved as a single
JSON document (see ``ordering.cart.storage``) after every mutation, and it is
the sole input to checkout: an Order snapshots ``cart.snapshot()`` at
placement time.

Lines are keyed by product id and kept in insertion order. Quantity is always
at least 1; decrementing a line with quantity 1 removes it.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from ordering.domain import ordering


@dataclass(frozen=True)
class CartTotals:
    total_price: Decimal
    total_items: int


@ordering.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    image_ref = String(max_length=1024)
    quantity = Integer(required=True, min_value=1)

    @property
    def line_total(self) -> Decimal:
        return Decimal(str(self.unit_price)) * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "name": self.name,
            "unit_price": self.unit_price,
            "image_ref": self.image_ref,
            "quantity": self.quantity,
        }


@ordering.aggregate
class Cart:
    owner_key = Identifier(required=True)  # Customer id, or a guest key
    items = HasMany(CartItem)
    updated_at = DateTime()

    @invariant.post
    def product_ids_are_unique(self):
        product_ids = [str(item.product_id) for item in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError({"items": ["A product can appear only once in the cart"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, owner_key):
        return cls(owner_key=owner_key, updated_at=datetime.now(UTC))

    @classmethod
    def restore(cls, owner_key, lines):
        """Rebuild a cart from saved lines, skipping any that are unusable."""
        cart = cls.create(owner_key)
        for line in lines or []:
            try:
                quantity = int(line.get("quantity") or 0)
                if quantity < 1 or cart.find(line["product_id"]) is not None:
                    continue
                cart.add_items(
                    CartItem(
                        product_id=line["product_id"],
                        name=line["name"],
                        unit_price=float(line["unit_price"]),
                        image_ref=line.get("image_ref"),
                        quantity=quantity,
                    )
                )
            except (KeyError, TypeError, ValueError, ValidationError):
                continue
        return cart

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def find(self, product_id):
        return next((i for i in self.items if str(i.product_id) == str(product_id)), None)

    def add_item(self, product_id, name, unit_price, image_ref=None):
        """Add one unit of a product, inserting a new line if it is not in the cart yet."""
        existing = self.find(product_id)
        if existing:
            existing.quantity += 1
        else:
            self.add_items(
                CartItem(
                    product_id=product_id,
                    name=name,
                    unit_price=unit_price,
                    image_ref=image_ref,
                    quantity=1,
                )
            )
        self._touch()

    def remove_item(self, product_id):
        item = self.find(product_id)
        if item is None:
            return
        self.remove_items(item)
        self._touch()

    def increment(self, product_id):
        item = self.find(product_id)
        if item is None:
            return
        item.quantity += 1
        self._touch()

    def decrement(self, product_id):
        item = self.find(product_id)
        if item is None:
            return
        if item.quantity <= 1:
            self.remove_items(item)
        else:
            item.quantity -= 1
        self._touch()

    def clear(self):
        for item in list(self.items):
            self.remove_items(item)
        self._touch()

    def _touch(self):
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def is_empty(self) -> bool:
        return not self.items

    def totals(self) -> CartTotals:
        return CartTotals(
            total_price=sum((item.line_total for item in self.items), Decimal("0")),
            total_items=sum(item.quantity for item in self.items),
        )

    def snapshot(self) -> list[dict]:
        """Deep copy of the cart lines, in insertion order."""
        return [item.to_dict() for item in self.items]
