"""Address Book — add command and read helpers."""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.customer.profile import CustomerProfile
from ordering.domain import ordering


@ordering.command(part_of="CustomerProfile")
class AddAddress:
    """Save a new shipping address to a customer's address book."""

    customer_id: Identifier(required=True)
    first_name: String(max_length=100)
    last_name: String(max_length=100)
    email: String(max_length=254)
    phone: String(max_length=20)
    line1: String(max_length=255)
    city: String(max_length=100)
    state: String(max_length=100)
    zip_code: String(max_length=20)
    country: String(max_length=100)


@ordering.command_handler(part_of=CustomerProfile)
class ManageAddressesHandler:
    @handle(AddAddress)
    def add_address(self, command):
        repo = current_domain.repository_for(CustomerProfile)
        profile = load_or_open_profile(command.customer_id)

        address = profile.add_address(
            first_name=command.first_name,
            last_name=command.last_name,
            email=command.email,
            phone=command.phone,
            line1=command.line1,
            city=command.city,
            state=command.state,
            zip_code=command.zip_code,
            country=command.country,
        )
        repo.add(profile)
        return str(address.id)


def load_or_open_profile(customer_id) -> CustomerProfile:
    """Fetch the customer's profile, starting an empty one on first use."""
    try:
        return current_domain.repository_for(CustomerProfile).get(customer_id)
    except ObjectNotFoundError:
        return CustomerProfile.open(customer_id)


class AddressBook:
    """Read side of a customer's address book."""

    def __init__(self, customer_id):
        self.customer_id = customer_id

    def _profile(self) -> CustomerProfile | None:
        try:
            return current_domain.repository_for(CustomerProfile).get(self.customer_id)
        except ObjectNotFoundError:
            return None

    def list(self) -> list[dict]:
        profile = self._profile()
        if profile is None:
            return []
        return [address.to_dict() for address in profile.addresses]

    def find(self, address_id) -> dict:
        profile = self._profile()
        address = profile.find_address(address_id) if profile is not None else None
        if address is None:
            raise ObjectNotFoundError(f"Address {address_id} not found for customer {self.customer_id}")
        return address.to_dict()
