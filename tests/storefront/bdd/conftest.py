"""Shared BDD fixtures and step definitions for the storefront."""

import pytest
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain
from pytest_bdd import given, parsers, then

from storefront.cart.cart import Cart
from storefront.cart.identity import User
from storefront.cart.items import add_item
from storefront.catalogue.product import Product
from storefront.inventory.reservation import get_available_stock

PRODUCT_ID = 1


@pytest.fixture()
def shopper():
    return User(user_id="user-001")


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@pytest.fixture()
def placed():
    """Holds the order created by a When step."""
    return {"order": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a product with {stock:d} units in stock"), target_fixture="product")
def product_in_stock(make_product, stock):
    return make_product(PRODUCT_ID, stock=stock, price=25.0, name="Seat Cover")


@given(parsers.cfparse("a user cart holding {qty:d} units"))
def user_cart(shopper, qty):
    return add_item(shopper, PRODUCT_ID, qty)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(placed, status):
    assert placed["order"].status == status


@then(parsers.cfparse('the cart status is "{status}"'))
def cart_status_is(placed, status):
    cart = current_domain.repository_for(Cart).get(placed["order"].cart_id)
    assert cart.status == status


@then(parsers.cfparse("{qty:d} units are available"))
def units_available(qty):
    assert get_available_stock(PRODUCT_ID) == qty


@then(parsers.cfparse("the product stock is {stock:d}"))
def product_stock_is(stock):
    assert current_domain.repository_for(Product).get(PRODUCT_ID).stock == stock


@then("the cart action fails with a validation error")
def cart_action_fails(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)
