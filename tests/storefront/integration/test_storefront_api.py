"""Integration tests for the Storefront API via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean import current_domain

from storefront.api import cart_router, order_router, pricing_router, register_exception_handlers
from storefront.cart.cart import Cart, CartStatus
from storefront.catalogue.product import Product
from storefront.order.order import Order, OrderStatus


@pytest.fixture()
def client():
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(cart_router)
    app.include_router(pricing_router)
    app.include_router(order_router)
    return TestClient(app)


def _add_item(client, product_id=1, quantity=1, configuration=None, user_id="user-1"):
    return client.post(
        "/carts/items",
        json={"user_id": user_id, "product_id": product_id, "quantity": quantity, "configuration": configuration},
    )


class TestCartEndpoints:
    def test_add_item(self, client, make_product):
        make_product(1, price=25.0)
        response = _add_item(client, quantity=2)

        assert response.status_code == 201
        body = response.json()
        assert body["quantity"] == 2
        assert body["total_price"] == 50.0
        assert body["merged"] is False

    def test_insufficient_stock_reports_available(self, client, make_product):
        make_product(1, stock=3)
        response = _add_item(client, quantity=5)

        assert response.status_code == 422
        body = response.json()
        assert body["available"] == 3
        assert body["requested"] == 5

    def test_unknown_product(self, client):
        assert _add_item(client, product_id=999).status_code == 404

    def test_both_identities_rejected(self, client, make_product):
        make_product(1)
        response = client.post("/carts/items", json={"user_id": "u", "session_id": "s", "product_id": 1})
        assert response.status_code == 422

    def test_current_cart_and_count(self, client, make_product):
        make_product(1, price=10.0)
        _add_item(client, quantity=3)

        cart = client.get("/carts/current", params={"user_id": "user-1"}).json()
        assert cart["totals"]["subtotal"] == 30.0
        assert len(cart["lines"]) == 1
        assert client.get("/carts/current/count", params={"user_id": "user-1"}).json() == {"count": 3}

    def test_update_and_remove_item(self, client, make_product):
        make_product(1)
        added = _add_item(client).json()

        url = f"/carts/{added['cart_id']}/items/{added['item_id']}"
        assert client.put(url, json={"quantity": 4}).status_code == 200
        assert current_domain.repository_for(Cart).get(added["cart_id"]).item_count == 4

        assert client.delete(url).status_code == 200
        assert current_domain.repository_for(Cart).get(added["cart_id"]).items == []

    def test_coupon_usage_limit_conflict(self, client, make_product, make_coupon):
        make_product(1, price=100.0)
        make_coupon(code="ONCE", usage_limit=0)
        cart_id = _add_item(client).json()["cart_id"]

        response = client.post(f"/carts/{cart_id}/coupons", json={"code": "once"})
        assert response.status_code == 409

    def test_apply_coupon(self, client, make_product, make_coupon):
        make_product(1, price=100.0)
        make_coupon(code="SAVE10")
        cart_id = _add_item(client).json()["cart_id"]

        response = client.post(f"/carts/{cart_id}/coupons", json={"code": "save10"})
        assert response.status_code == 200
        assert response.json() == {"code": "SAVE10", "discount": 10.0}

    def test_validate_cart(self, client, make_product):
        make_product(1, stock=5)
        cart_id = _add_item(client, quantity=2).json()["cart_id"]
        assert client.get(f"/carts/{cart_id}/validate").json() == {"valid": True, "errors": []}


class TestPricingEndpoints:
    def test_quote_price(self, client, make_product, make_variation):
        make_product(1, price=100.0)
        make_variation(7, 1, [(31, "Large", 15.0, 10)], name="Size")

        response = client.post("/products/1/price", json={"configuration": {"variations": {"7": "31"}}, "quantity": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["subtotal"] == 115.0
        assert body["total"] == 230.0

    def test_availability_uses_scarcest_option(self, client, make_product, make_variation):
        make_product(1, stock=100)
        make_variation(7, 1, [(31, "Small", 0.0, 4)], name="Size")
        make_variation(8, 1, [(41, "Red", 0.0, 9)], name="Color")

        response = client.post("/products/1/availability", json={"configuration": {"variations": {"7": 31, "8": 41}}})

        body = response.json()
        assert body["available"] is True
        assert body["available_quantity"] == 4
        assert len(body["breakdown"]) == 2

    def test_availability_of_unknown_product(self, client):
        assert client.post("/products/42/availability", json={}).status_code == 404


class TestOrderEndpoints:
    def test_checkout_and_settle(self, client, make_product):
        make_product(1, stock=10, price=20.0)
        cart_id = _add_item(client, quantity=2).json()["cart_id"]

        response = client.post(
            "/orders",
            json={
                "user_id": "user-1",
                "shipping_address": {
                    "street": "1 Main St",
                    "city": "Springfield",
                    "postal_code": "12345",
                    "country": "US",
                },
            },
        )
        assert response.status_code == 201
        order_id = response.json()["order_id"]
        assert current_domain.repository_for(Cart).get(cart_id).status == CartStatus.CHECKOUT.value

        payment = client.post(f"/orders/{order_id}/payment").json()
        assert payment["payment_id"].startswith("fake_pay_")

        response = client.post(f"/orders/{order_id}/capture")
        assert response.json() == {"status": OrderStatus.PAID.value}
        assert current_domain.repository_for(Product).get(1).stock == 8
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.PAID.value

    def test_failed_settlement_and_cancel(self, client, make_product):
        make_product(1, stock=10)
        _add_item(client)
        order_id = client.post("/orders", json={"user_id": "user-1"}).json()["order_id"]

        response = client.post(f"/orders/{order_id}/settle", json={"succeeded": False, "reason": "Declined"})
        assert response.json() == {"status": OrderStatus.PAYMENT_FAILED.value}

        response = client.post(f"/orders/{order_id}/cancel", json={"reason": "Gave up"})
        assert response.json() == {"status": OrderStatus.CANCELLED.value}

    def test_empty_cart_cannot_check_out(self, client):
        assert client.post("/orders", json={"user_id": "nobody"}).status_code == 404

    def test_order_details(self, client, make_product):
        make_product(1)
        _add_item(client)
        order_id = client.post("/orders", json={"user_id": "user-1"}).json()["order_id"]

        body = client.get(f"/orders/{order_id}").json()
        assert body["status"] == OrderStatus.PENDING_PAYMENT.value
        assert body["items"][0]["product_id"] == 1
