"""
Pricing and cart tests.
"""

import pytest

from pos_ultimate.errors import NotFoundError, ValidationError
from pos_ultimate.services.cart import Cart
from pos_ultimate.services.pricing_service import (
    compute_change_due,
    compute_discount,
    compute_final_total,
    items_total,
)


PRODUCT = {
    "id": "p1",
    "local_id": "l1",
    "name": "Coffee",
    "price": 1200,
    "cost_price": 800,
    "stock": 5,
    "min_stock": 1,
    "category": "Grocery",
    "sku": "779",
}


class TestPricing:

    def test_percentage_discount(self):
        assert compute_final_total(10000, 15, "PERCENTAGE") == 8500

    def test_fixed_discount_floors_at_zero(self):
        assert compute_final_total(10000, 12000, "FIXED") == 0

    def test_no_discount(self):
        assert compute_final_total(10000) == 10000
        assert compute_discount(10000, 0, None) == 0

    def test_repeatable(self):
        assert compute_final_total(10000, 15, "PERCENTAGE") == compute_final_total(10000, 15, "PERCENTAGE")

    def test_fractional_amounts_round_to_cents(self):
        assert compute_final_total(99.99, 10, "PERCENTAGE") == 89.99

    @pytest.mark.parametrize("discount,discount_type", [(-5, "FIXED"), (101, "PERCENTAGE"), (5, "BOGUS")])
    def test_invalid_discounts(self, discount, discount_type):
        with pytest.raises(ValidationError):
            compute_final_total(100, discount, discount_type)

    def test_change_due(self):
        assert compute_change_due(8500, 10000) == 1500
        assert compute_change_due(8500, None) == 0
        with pytest.raises(ValidationError):
            compute_change_due(8500, 8000)

    def test_items_total(self):
        assert items_total([{"price": 2.5, "quantity": 1.5}, {"price": 100, "quantity": 2}]) == 203.75


class TestCart:

    def test_add_snapshots_product(self):
        cart = Cart("l1")
        item = cart.add(PRODUCT, 2)

        assert item["quantity"] == 2
        assert item["price"] == 1200
        assert item["cost_price"] == 800
        assert cart.total() == 2400

    def test_adding_again_accumulates(self):
        cart = Cart("l1")
        cart.add(PRODUCT, 2)
        cart.add(PRODUCT, 3)

        assert len(cart) == 1
        assert cart.to_items()[0]["quantity"] == 5

    def test_cannot_exceed_stock(self):
        cart = Cart("l1")
        cart.add(PRODUCT, 4)

        with pytest.raises(ValidationError) as exc_info:
            cart.add(PRODUCT, 2)
        assert exc_info.value.details["requested_quantity"] == 6
        assert cart.to_items()[0]["quantity"] == 4

    def test_price_frozen_at_add_time(self):
        cart = Cart("l1")
        product = dict(PRODUCT)
        cart.add(product, 1)
        product["price"] = 9999

        assert cart.total() == 1200

    def test_other_location_rejected(self):
        with pytest.raises(ValidationError):
            Cart("l2").add(PRODUCT, 1)

    @pytest.mark.parametrize("quantity", [0, -1, True, "2"])
    def test_invalid_quantity(self, quantity):
        with pytest.raises(ValidationError):
            Cart("l1").add(PRODUCT, quantity)

    def test_set_quantity_and_remove(self):
        cart = Cart("l1")
        cart.add(PRODUCT, 1)

        cart.set_quantity("p1", 5)
        assert cart.total() == 6000
        with pytest.raises(ValidationError):
            cart.set_quantity("p1", 6)
        with pytest.raises(NotFoundError):
            cart.set_quantity("nope", 1)

        cart.remove("p1")
        assert len(cart) == 0

    def test_clear(self):
        cart = Cart("l1")
        cart.add(PRODUCT, 1)
        cart.clear()
        assert cart.to_items() == []
        assert cart.total() == 0
