"""Tests for the Cart aggregate — line management, totals and the quantity invariant."""

import random
from decimal import Decimal

from ordering.cart.cart import Cart


def _cart_with_ring():
    cart = Cart.create("cust-001")
    cart.add_item("prod-ring", "Silver Ring", 500.0, image_ref="rings/silver.jpg")
    return cart


class TestAddItem:
    def test_new_product_is_inserted_with_quantity_one(self):
        cart = _cart_with_ring()
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 1
        assert cart.items[0].name == "Silver Ring"
        assert cart.items[0].image_ref == "rings/silver.jpg"

    def test_adding_same_product_increments_quantity(self):
        cart = _cart_with_ring()
        cart.add_item("prod-ring", "Silver Ring", 500.0)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2

    def test_lines_keep_insertion_order(self):
        cart = _cart_with_ring()
        cart.add_item("prod-chain", "Silver Chain", 1200.0)
        cart.add_item("prod-anklet", "Anklet", 350.0)
        cart.add_item("prod-ring", "Silver Ring", 500.0)
        assert [line["product_id"] for line in cart.snapshot()] == ["prod-ring", "prod-chain", "prod-anklet"]

    def test_add_updates_timestamp(self):
        cart = Cart.create("cust-001")
        before = cart.updated_at
        cart.add_item("prod-ring", "Silver Ring", 500.0)
        assert cart.updated_at >= before


class TestRemoveAndQuantity:
    def test_remove_deletes_line(self):
        cart = _cart_with_ring()
        cart.remove_item("prod-ring")
        assert cart.is_empty

    def test_remove_unknown_product_is_a_no_op(self):
        cart = _cart_with_ring()
        cart.remove_item("prod-missing")
        assert len(cart.items) == 1

    def test_increment(self):
        cart = _cart_with_ring()
        cart.increment("prod-ring")
        assert cart.find("prod-ring").quantity == 2

    def test_decrement_above_one(self):
        cart = _cart_with_ring()
        cart.increment("prod-ring")
        cart.decrement("prod-ring")
        assert cart.find("prod-ring").quantity == 1

    def test_decrement_at_one_removes_line(self):
        cart = _cart_with_ring()
        cart.decrement("prod-ring")
        assert cart.find("prod-ring") is None
        assert cart.is_empty

    def test_increment_and_decrement_of_unknown_product_do_nothing(self):
        cart = _cart_with_ring()
        cart.increment("prod-missing")
        cart.decrement("prod-missing")
        assert cart.snapshot() == _cart_with_ring().snapshot()

    def test_clear_empties_cart(self):
        cart = _cart_with_ring()
        cart.add_item("prod-chain", "Silver Chain", 1200.0)
        cart.clear()
        assert cart.is_empty
        assert cart.totals().total_items == 0


class TestTotals:
    def test_totals_of_empty_cart(self):
        totals = Cart.create("cust-001").totals()
        assert totals.total_price == Decimal("0")
        assert totals.total_items == 0

    def test_totals_sum_price_times_quantity(self):
        cart = _cart_with_ring()
        cart.add_item("prod-ring", "Silver Ring", 500.0)
        cart.add_item("prod-chain", "Silver Chain", 1200.5)
        totals = cart.totals()
        assert totals.total_price == Decimal("2200.5")
        assert totals.total_items == 3

    def test_totals_avoid_float_drift(self):
        cart = Cart.create("cust-001")
        cart.add_item("prod-a", "Toe Ring", 0.1)
        cart.add_item("prod-b", "Nose Pin", 0.2)
        assert cart.totals().total_price == Decimal("0.3")


class TestQuantityInvariantUnderRandomEdits:
    def test_total_items_matches_quantities_and_no_line_drops_below_one(self):
        rng = random.Random(20240601)
        products = [f"prod-{n}" for n in range(5)]
        cart = Cart.create("cust-001")

        for _ in range(400):
            product_id = rng.choice(products)
            operation = rng.choice(["add", "increment", "decrement", "remove"])
            if operation == "add":
                cart.add_item(product_id, product_id.title(), 100.0)
            elif operation == "increment":
                cart.increment(product_id)
            elif operation == "decrement":
                cart.decrement(product_id)
            else:
                cart.remove_item(product_id)

            quantities = [item.quantity for item in cart.items]
            assert all(q >= 1 for q in quantities)
            assert cart.totals().total_items == sum(quantities)
            assert len({str(item.product_id) for item in cart.items}) == len(cart.items)


class TestRestore:
    def test_restore_rebuilds_lines(self):
        original = _cart_with_ring()
        original.add_item("prod-chain", "Silver Chain", 1200.0)
        restored = Cart.restore("cust-001", original.snapshot())
        assert restored.snapshot() == original.snapshot()

    def test_restore_skips_unusable_lines(self):
        lines = [
            {"product_id": "prod-ring", "name": "Silver Ring", "unit_price": 500.0, "quantity": 2},
            {"product_id": "prod-zero", "name": "Zero", "unit_price": 10.0, "quantity": 0},
            {"product_id": "prod-ring", "name": "Duplicate", "unit_price": 1.0, "quantity": 1},
            {"product_id": "prod-nameless", "unit_price": 10.0, "quantity": 1},
            {"product_id": "prod-bad-price", "name": "Bad", "unit_price": "abc", "quantity": 1},
        ]
        cart = Cart.restore("cust-001", lines)
        assert [line["product_id"] for line in cart.snapshot()] == ["prod-ring"]
        assert cart.find("prod-ring").quantity == 2

    def test_restore_from_nothing_is_empty(self):
        assert Cart.restore("cust-001", None).is_empty


class TestSnapshot:
    def test_snapshot_is_a_copy(self):
        cart = _cart_with_ring()
        snapshot = cart.snapshot()
        snapshot[0]["quantity"] = 99
        cart.increment("prod-ring")
        assert snapshot[0]["quantity"] == 99
        assert cart.find("prod-ring").quantity == 2
