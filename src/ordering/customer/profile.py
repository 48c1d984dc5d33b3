"""CustomerProfile aggregate: the customer's address book.

Addresses are append-only during checkout. The first address saved for a
profile becomes the default.
"""

from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, String

from ordering.customer.events import AddressAdded
from ordering.domain import ordering

REQUIRED_ADDRESS_FIELDS = ("first_name", "email", "phone", "line1")

ADDRESS_FIELDS = (
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


def missing_required_fields(data: dict) -> list[str]:
    """Names of required address fields that are absent or blank in ``data``."""
    return [field for field in REQUIRED_ADDRESS_FIELDS if not str(data.get(field) or "").strip()]


def ensure_address_complete(data: dict) -> None:
    missing = missing_required_fields(data)
    if missing:
        errors = {"address": ["Please fill in all required fields"]}
        errors.update({field: ["is required"] for field in missing})
        raise ValidationError(errors)


@ordering.entity(part_of="CustomerProfile")
class Address:
    """A shipping destination in the customer's address book."""

    first_name: String(required=True, max_length=100)
    last_name: String(max_length=100)
    email: String(required=True, max_length=254)
    phone: String(required=True, max_length=20)
    line1: String(required=True, max_length=255)
    city: String(max_length=100)
    state: String(max_length=100)
    zip_code: String(max_length=20)
    country: String(max_length=100, default="India")
    is_default: Boolean(default=False)

    def to_dict(self) -> dict:
        data = {field: getattr(self, field) for field in ADDRESS_FIELDS}
        data["id"] = str(self.id)
        data["is_default"] = bool(self.is_default)
        return data


@ordering.aggregate
class CustomerProfile:
    """Per-customer profile holding the address book.

    Keyed by the customer id issued by the authentication provider, so a
    profile can be created on first use without a lookup.
    """

    customer_id: Identifier(identifier=True, required=True)
    addresses: HasMany(Address)
    created_at: DateTime(default=lambda: datetime.now(UTC))

    @invariant.post
    def at_most_one_default_address(self):
        defaults = [a for a in self.addresses if a.is_default]
        if len(defaults) > 1:
            raise ValidationError({"addresses": ["Only one address can be the default"]})

    @classmethod
    def open(cls, customer_id):
        return cls(customer_id=customer_id, created_at=datetime.now(UTC))

    def add_address(self, **fields):
        ensure_address_complete(fields)

        values = {field: fields.get(field) for field in ADDRESS_FIELDS if fields.get(field) is not None}
        is_default = not self.addresses

        with atomic_change(self):
            address = Address(is_default=is_default, **values)
            self.add_addresses(address)

        self.raise_(
            AddressAdded(
                customer_id=self.customer_id,
                address_id=address.id,
                first_name=address.first_name,
                city=address.city,
                country=address.country,
                is_default=is_default,
            )
        )
        return address

    def find_address(self, address_id):
        return next((a for a in self.addresses if str(a.id) == str(address_id)), None)

    @property
    def default_address(self):
        return next((a for a in self.addresses if a.is_default), None)
