"""Tests for merging a guest cart into a user's cart and cart views."""

import pytest
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart, CartStatus
from storefront.cart.events import GuestCartMerged
from storefront.cart.identity import Guest, User
from storefront.cart.items import add_item
from storefront.cart.lookup import find_cart
from storefront.cart.management import (
    MergeGuestCart,
    get_cart_item_count,
    get_cart_with_items,
    merge_guest_cart,
    validate_cart_for_checkout,
)
from storefront.catalogue.product import Product
from storefront.order.creation import create_order
from storefront.order.order import OrderStatus, PaymentOutcome
from storefront.order.payment import settle_payment

GUEST = Guest(session_id="sess-1")
USER = User(user_id="user-1")


class TestMergeGuestCart:
    def test_matching_lines_are_summed(self, make_product):
        make_product(1, price=10.0)
        make_product(2, price=5.0)
        guest_line = add_item(GUEST, 1, 2)
        add_item(USER, 1, 1)
        add_item(GUEST, 2, 1)

        cart = merge_guest_cart("sess-1", "user-1")

        quantities = {item.product_id: item.quantity for item in cart.items}
        assert quantities == {1: 3, 2: 1}
        assert cart.subtotal == 35.0
        assert any(isinstance(e, GuestCartMerged) for e in cart._events)
        with pytest.raises(ObjectNotFoundError):
            current_domain.repository_for(Cart).get(guest_line.cart_id)

    def test_lines_for_inactive_products_are_skipped(self, make_product):
        make_product(1)
        make_product(2)
        add_item(GUEST, 1, 1)
        add_item(GUEST, 2, 1)

        product = current_domain.repository_for(Product).get(2)
        product.status = "inactive"
        current_domain.repository_for(Product).add(product)

        cart = merge_guest_cart("sess-1", "user-1")
        assert [item.product_id for item in cart.items] == [1]

    def test_no_guest_cart_returns_user_cart(self):
        cart = merge_guest_cart("sess-unknown", "user-1")
        assert cart.user_id == "user-1"
        assert cart.items == []

    def test_guest_cart_in_checkout_is_left_for_its_order(self, make_product):
        make_product(1, stock=5)
        add_item(GUEST, 1, 2)
        order = create_order(GUEST)

        cart = merge_guest_cart("sess-1", "user-1")
        assert cart.items == []
        assert current_domain.repository_for(Cart).get(order.cart_id).status == CartStatus.CHECKOUT.value

        settled = settle_payment(order.id, PaymentOutcome(succeeded=True))
        assert settled.status == OrderStatus.PAID.value
        assert current_domain.repository_for(Cart).get(order.cart_id).status == CartStatus.CONVERTED.value

    def test_merge_via_command(self, make_product):
        make_product(1)
        add_item(GUEST, 1, 1)
        cart_id = current_domain.process(MergeGuestCart(session_id="sess-1", user_id="user-1"), asynchronous=False)
        assert current_domain.repository_for(Cart).get(cart_id).item_count == 1
        assert find_cart(GUEST) is None


class TestCartView:
    def test_view_includes_live_sale_discount(self, make_product):
        make_product(1, price=100.0, sale_price=80.0, name="Seat")
        add_item(GUEST, 1, 2)

        view = get_cart_with_items(GUEST)
        assert view.lines[0].product_name == "Seat"
        assert view.lines[0].on_sale
        assert view.totals.subtotal == 200.0
        assert view.totals.sale_discount == 40.0
        assert view.totals.total == 160.0

    def test_item_count(self, make_product):
        make_product(1)
        add_item(GUEST, 1, 3)
        assert get_cart_item_count(GUEST) == 3
        assert get_cart_item_count(Guest(session_id="other")) == 0


class TestValidateForCheckout:
    def test_valid_cart(self, make_product):
        make_product(1, stock=5)
        result = add_item(GUEST, 1, 2)
        cart = current_domain.repository_for(Cart).get(result.cart_id)
        assert validate_cart_for_checkout(cart) == (True, [])

    def test_stale_stock_is_reported(self, make_product):
        make_product(1, stock=5, name="Seat")
        result = add_item(GUEST, 1, 4)

        product = current_domain.repository_for(Product).get(1)
        product.stock = 2
        current_domain.repository_for(Product).add(product)

        cart = current_domain.repository_for(Cart).get(result.cart_id)
        valid, errors = validate_cart_for_checkout(cart)
        assert not valid
        assert errors == ['Insufficient stock for "Seat". Only 2 available']
