import pytest
from ordering.cart.session import CartSession
from ordering.checkout.session import StartCheckout
from ordering.checkout.steps import AddressSelection, CheckoutStepController
from ordering.customer.addresses import AddAddress
from payments.gateway import reset_collector, reset_gateway, set_collector, set_gateway
from payments.gateway.fake_adapter import FakeCollector, FakeGateway
from protean import current_domain
from protean.integrations.pytest import DomainFixture

SHIPPING_ADDRESS = {
    "first_name": "Asha",
    "last_name": "Rao",
    "email": "asha@example.com",
    "phone": "9876543210",
    "line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "zip_code": "560001",
    "country": "India",
}


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        for _, broker in current_domain.brokers.items():
            broker._data_reset()
        current_domain.event_store.store._data_reset()

    reset_gateway()
    reset_collector()


# ---------------------------------------------------------------------------
# Processor doubles
# ---------------------------------------------------------------------------
@pytest.fixture()
def gateway():
    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture()
def collector(gateway):
    fake = FakeCollector(gateway)
    set_collector(fake)
    return fake


# ---------------------------------------------------------------------------
# Checkout inputs
# ---------------------------------------------------------------------------
@pytest.fixture()
def customer_id():
    return "cust-001"


@pytest.fixture()
def shipping_address():
    return dict(SHIPPING_ADDRESS)


@pytest.fixture()
def filled_cart(customer_id):
    """Two silver rings at ₹500 each."""
    cart = CartSession(customer_id)
    cart.add("prod-ring", "Silver Ring", 500.0, image_ref="rings/silver.jpg")
    cart.add("prod-ring", "Silver Ring", 500.0, image_ref="rings/silver.jpg")
    return cart


@pytest.fixture()
def saved_address_id(customer_id, shipping_address):
    return current_domain.process(
        AddAddress(customer_id=customer_id, **shipping_address),
        asynchronous=False,
    )


@pytest.fixture()
def checkout_session_id(customer_id):
    return current_domain.process(StartCheckout(customer_id=customer_id), asynchronous=False)


@pytest.fixture()
def session_on_payment(checkout_session_id, filled_cart, saved_address_id, gateway, collector):
    """A checkout session past the Shipping step, with a filled cart."""
    CheckoutStepController(checkout_session_id).proceed_to_payment(AddressSelection(address_id=saved_address_id))
    return checkout_session_id
