"""Integration tests for the storefront HTTP API: cart, addresses, checkout, confirmation."""

import inspect

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api.routes import address_router, cart_router, checkout_router, order_router
from ordering.order.order import Order
from protean import current_domain
from protean.integrations.fastapi import register_exception_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(cart_router)
    app.include_router(address_router)
    app.include_router(checkout_router)
    app.include_router(order_router)
    return TestClient(app)


RING = {"product_id": "prod-ring", "name": "Silver Ring", "unit_price": 500.0, "image_ref": "rings/silver.jpg"}


def _fill_cart(client, owner="cust-001"):
    client.post(f"/carts/{owner}/items", json=RING)
    return client.post(f"/carts/{owner}/items", json=RING)


def _session_on_payment(client, shipping_address, owner="cust-001"):
    _fill_cart(client, owner)
    session_id = client.post("/checkout", json={"customer_id": owner}).json()["session_id"]
    response = client.put(f"/checkout/{session_id}/shipping", json={"new_address": shipping_address})
    assert response.status_code == 200
    return session_id


class TestCartEndpoints:
    def test_add_item_opens_drawer(self, client):
        response = client.post("/carts/guest-1/items", json=RING)
        assert response.status_code == 200
        data = response.json()
        assert data["is_open"] is True
        assert data["total_items"] == 1
        assert data["items"][0]["image_ref"] == "rings/silver.jpg"

    def test_get_cart(self, client):
        _fill_cart(client, "guest-1")
        data = client.get("/carts/guest-1").json()
        assert data["total_items"] == 2
        assert data["total_price"] == 1000.0

    def test_increment_decrement_remove(self, client):
        _fill_cart(client, "guest-1")
        assert client.post("/carts/guest-1/items/prod-ring/increment").json()["total_items"] == 3
        assert client.post("/carts/guest-1/items/prod-ring/decrement").json()["total_items"] == 2
        assert client.delete("/carts/guest-1/items/prod-ring").json()["items"] == []

    def test_clear(self, client):
        _fill_cart(client, "guest-1")
        assert client.delete("/carts/guest-1").json()["total_items"] == 0

    def test_negative_price_is_rejected(self, client):
        response = client.post("/carts/guest-1/items", json={**RING, "unit_price": -1})
        assert response.status_code == 422


class TestAddressEndpoints:
    def test_add_and_list(self, client, shipping_address):
        response = client.post("/customers/cust-001/addresses", json=shipping_address)
        assert response.status_code == 201
        address_id = response.json()["address_id"]

        addresses = client.get("/customers/cust-001/addresses").json()
        assert [a["id"] for a in addresses] == [address_id]
        assert addresses[0]["is_default"] is True

    def test_incomplete_address(self, client, shipping_address):
        response = client.post("/customers/cust-001/addresses", json={**shipping_address, "line1": ""})
        assert response.status_code == 400


class TestCheckoutEndpoints:
    def test_start_checkout(self, client):
        response = client.post("/checkout", json={"customer_id": "cust-001"})
        assert response.status_code == 201
        session_id = response.json()["session_id"]

        data = client.get(f"/checkout/{session_id}").json()
        assert data["step"] == "Shipping"
        assert data["saga_state"] == "Not_Started"
        assert data["cart_owner"] == "cust-001"

    def test_unknown_session(self, client):
        assert client.get("/checkout/no-such-session").status_code == 404

    def test_shipping_with_saved_address(self, client, shipping_address):
        address_id = client.post("/customers/cust-001/addresses", json=shipping_address).json()["address_id"]
        session_id = client.post("/checkout", json={"customer_id": "cust-001"}).json()["session_id"]

        response = client.put(f"/checkout/{session_id}/shipping", json={"address_id": address_id})

        assert response.status_code == 200
        assert response.json()["step"] == "Payment"
        assert response.json()["address_id"] == address_id

    def test_shipping_with_incomplete_form(self, client, shipping_address):
        session_id = client.post("/checkout", json={"customer_id": "cust-001"}).json()["session_id"]
        response = client.put(
            f"/checkout/{session_id}/shipping",
            json={"new_address": {**shipping_address, "first_name": None}},
        )
        assert response.status_code == 400

    def test_back_to_shipping(self, client, shipping_address):
        session_id = _session_on_payment(client, shipping_address)
        assert client.put(f"/checkout/{session_id}/back").json()["step"] == "Shipping"

    def test_cash_on_delivery(self, client, shipping_address):
        session_id = _session_on_payment(client, shipping_address)

        response = client.post(f"/checkout/{session_id}/submit", json={"payment_method": "Cash_On_Delivery"})

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "Succeeded"
        assert data["order_number"].startswith("COD")
        assert client.get(f"/checkout/{session_id}").json()["step"] == "Confirmation"
        assert client.get("/carts/cust-001").json()["items"] == []

    def test_empty_cart_submit(self, client, shipping_address):
        session_id = _session_on_payment(client, shipping_address)
        client.delete("/carts/cust-001")
        response = client.post(f"/checkout/{session_id}/submit", json={"payment_method": "Cash_On_Delivery"})
        assert response.status_code == 400

    def test_gateway_payment_round_trip(self, client, shipping_address, gateway, collector):
        gateway.configure(next_order_ref="order_123")
        session_id = _session_on_payment(client, shipping_address)

        submitted = client.post(f"/checkout/{session_id}/submit", json={"payment_method": "Gateway"}).json()

        assert submitted["state"] == "Awaiting_Payment"
        request = submitted["payment_request"]
        assert request["processor_order_ref"] == "order_123"
        assert request["amount_minor_units"] == 127900
        assert request["currency"] == "INR"
        assert request["prefill"]["email"] == "asha@example.com"

        response = client.post(
            f"/checkout/{session_id}/payment/success",
            json={
                "payment_id": "pay_001",
                "processor_order_ref": "order_123",
                "signature": gateway.sign("order_123", "pay_001"),
            },
        )

        assert response.status_code == 200
        assert response.json()["state"] == "Succeeded"
        order = current_domain.repository_for(Order).get(submitted["order_id"])
        assert order.payment_status == "Paid"

    def test_second_submit_is_conflict(self, client, shipping_address, gateway, collector):
        session_id = _session_on_payment(client, shipping_address)
        client.post(f"/checkout/{session_id}/submit", json={"payment_method": "Gateway"})

        response = client.post(f"/checkout/{session_id}/submit", json={"payment_method": "Gateway"})

        assert response.status_code == 409
        assert len(gateway.calls_to("create_remote_order")) == 1

    def test_dismiss(self, client, shipping_address, gateway, collector):
        session_id = _session_on_payment(client, shipping_address)
        client.post(f"/checkout/{session_id}/submit", json={"payment_method": "Gateway"})

        data = client.post(f"/checkout/{session_id}/payment/dismiss").json()

        assert data["state"] == "Failed"
        assert data["message"] == "Payment cancelled."
        assert client.get(f"/checkout/{session_id}").json()["busy"] is False

    def test_failure(self, client, shipping_address, gateway, collector):
        session_id = _session_on_payment(client, shipping_address)
        client.post(f"/checkout/{session_id}/submit", json={"payment_method": "Gateway"})

        data = client.post(
            f"/checkout/{session_id}/payment/failure",
            json={"reason_code": "BAD_REQUEST_ERROR", "reason_description": "Card declined"},
        ).json()

        assert data["state"] == "Failed"
        assert data["message"] == "Payment failed: Card declined"

    def test_stale_callback_is_conflict(self, client, shipping_address, gateway, collector):
        session_id = _session_on_payment(client, shipping_address)
        response = client.post(f"/checkout/{session_id}/payment/dismiss")
        assert response.status_code == 409

    def test_remote_order_failure(self, client, shipping_address, gateway, collector):
        gateway.configure(create_order_should_succeed=False)
        session_id = _session_on_payment(client, shipping_address)

        data = client.post(f"/checkout/{session_id}/submit", json={"payment_method": "Gateway"}).json()

        assert data["state"] == "Failed"
        assert data["message"] == "Failed to create order. Please try again."
        assert data["retryable"] is True
        assert len(client.get("/carts/cust-001").json()["items"]) == 1


class TestConfirmationEndpoints:
    def test_confirmation_by_order_number(self, client, shipping_address):
        session_id = _session_on_payment(client, shipping_address)
        outcome = client.post(f"/checkout/{session_id}/submit", json={"payment_method": "Cash_On_Delivery"}).json()

        response = client.get(f"/orders/confirmation/{outcome['order_number']}")

        assert response.status_code == 200
        receipt = response.json()
        assert receipt["id"] == outcome["order_id"]
        assert receipt["total_amount"] == 1279.0
        assert receipt["items"][0]["quantity"] == 2

    def test_unknown_reference(self, client):
        assert client.get("/orders/confirmation/ORD00000000000").status_code == 404

    def test_order_history(self, client, shipping_address):
        session_id = _session_on_payment(client, shipping_address)
        client.post(f"/checkout/{session_id}/submit", json={"payment_method": "Cash_On_Delivery"})

        history = client.get("/customers/cust-001/orders").json()
        assert len(history) == 1
        assert history[0]["payment_method"] == "Cash_On_Delivery"


class TestProcessorBoundRoutes:
    @pytest.mark.parametrize(
        "path",
        [
            "/checkout/{session_id}/submit",
            "/checkout/{session_id}/payment/success",
            "/checkout/{session_id}/payment/dismiss",
            "/checkout/{session_id}/payment/failure",
        ],
    )
    def test_runs_off_the_event_loop(self, path):
        # Plain functions are run in the threadpool, so a slow processor call
        # does not stall other requests.
        endpoints = {route.path: route.endpoint for route in checkout_router.routes}
        assert not inspect.iscoroutinefunction(endpoints[path])
