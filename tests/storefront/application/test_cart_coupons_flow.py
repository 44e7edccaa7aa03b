"""Tests for applying and removing coupons on carts."""

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.cart.coupons import ApplyCoupon, RemoveCoupon, apply_coupon
from storefront.cart.identity import Guest, User
from storefront.cart.items import add_item
from storefront.cart.totals import compute_totals
from storefront.coupon.coupon import Coupon, CouponUsage, CreateCoupon, DeactivateCoupon, record_usage
from storefront.errors import ConflictError


def _cart_with(make_product, identity=None, price=100.0):
    make_product(1, price=price)
    return add_item(identity or Guest(session_id="sess-1"), 1, 1).cart_id


class TestApplyCoupon:
    def test_percentage_capped_discount(self, make_product, make_coupon):
        cart_id = _cart_with(make_product)
        make_coupon(code="half", discount_value=50.0, maximum_discount_amount=20.0)

        assert apply_coupon(cart_id, "HALF") == 20.00
        cart = current_domain.repository_for(Cart).get(cart_id)
        assert compute_totals(cart).total == 80.0

    def test_code_is_case_insensitive(self, make_product, make_coupon):
        cart_id = _cart_with(make_product)
        make_coupon(code="SAVE10")
        assert current_domain.process(ApplyCoupon(cart_id=cart_id, code="save10"), asynchronous=False) == 10.0

    def test_unknown_code(self, make_product):
        cart_id = _cart_with(make_product)
        with pytest.raises(ObjectNotFoundError):
            apply_coupon(cart_id, "NOPE")

    def test_minimum_order_not_met(self, make_product, make_coupon):
        cart_id = _cart_with(make_product, price=40.0)
        make_coupon(minimum_order_amount=50.0)
        with pytest.raises(ValidationError):
            apply_coupon(cart_id, "SAVE10")

    def test_per_user_limit(self, make_product, make_coupon):
        cart_id = _cart_with(make_product, identity=User(user_id="user-1"))
        coupon = make_coupon(per_user_limit=1)
        record_usage(coupon.id, "user-1", "order-0", 5.0)

        with pytest.raises(ConflictError):
            apply_coupon(cart_id, "SAVE10")

    def test_record_usage_bumps_count(self, make_coupon):
        coupon = make_coupon()
        record_usage(coupon.id, "user-1", "order-1", 5.0)
        assert current_domain.repository_for(Coupon).get(coupon.id).usage_count == 1
        assert current_domain.repository_for(CouponUsage).count_for_user("save10", "user-1") == 1

    def test_free_shipping_flag(self, make_product, make_coupon):
        cart_id = _cart_with(make_product)
        make_coupon(code="SHIPFREE", discount_type="free_shipping", discount_value=0.0)
        assert apply_coupon(cart_id, "shipfree") == 0.0
        totals = compute_totals(current_domain.repository_for(Cart).get(cart_id))
        assert totals.free_shipping
        assert totals.total == 100.0


class TestRemoveCoupon:
    def test_remove_one(self, make_product, make_coupon):
        cart_id = _cart_with(make_product)
        make_coupon()
        apply_coupon(cart_id, "SAVE10")
        assert current_domain.process(RemoveCoupon(cart_id=cart_id, code="save10"), asynchronous=False) == 1
        assert current_domain.repository_for(Cart).get(cart_id).coupons == []

    def test_remove_all(self, make_product, make_coupon):
        cart_id = _cart_with(make_product)
        make_coupon(code="A")
        make_coupon(code="B", discount_type="fixed", discount_value=5.0)
        apply_coupon(cart_id, "A")
        apply_coupon(cart_id, "B")
        assert current_domain.process(RemoveCoupon(cart_id=cart_id), asynchronous=False) == 2


class TestCouponAdministration:
    def test_create_and_duplicate(self):
        coupon_id = current_domain.process(
            CreateCoupon(code="welcome", discount_value=15.0, region="CA"), asynchronous=False
        )
        coupon = current_domain.repository_for(Coupon).get(coupon_id)
        assert coupon.code == "WELCOME"
        assert coupon.region == "ca"

        with pytest.raises(ConflictError):
            current_domain.process(CreateCoupon(code="WELCOME", discount_value=5.0), asynchronous=False)

    def test_deactivate(self, make_coupon):
        make_coupon()
        current_domain.process(DeactivateCoupon(code="save10"), asynchronous=False)
        assert current_domain.repository_for(Coupon).find_active_by_code("SAVE10") is None
