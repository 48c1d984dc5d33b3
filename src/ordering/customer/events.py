"""Domain events for the CustomerProfile aggregate."""

from protean.fields import Boolean, Identifier, String

from ordering.domain import ordering


@ordering.event(part_of="CustomerProfile")
class AddressAdded:
    """A shipping address was added to a customer's address book."""

    __version__ = 1

    customer_id: Identifier(required=True)
    address_id: Identifier(required=True)
    first_name: String(required=True)
    city: String()
    country: String()
    is_default: Boolean(default=False)
