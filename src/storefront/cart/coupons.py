"""Applying and removing coupons on a cart."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.cart.lookup import get_cart
from storefront.coupon.coupon import ensure_user_may_redeem, find_coupon
from storefront.domain import storefront

logger = structlog.get_logger(__name__)


def apply_coupon(cart_id, code) -> float:
    """Validate a coupon against the cart and snapshot its discount. Returns the discount."""
    cart = get_cart(cart_id)
    cart.ensure_active()

    coupon = find_coupon(code)
    subtotal = cart.subtotal
    coupon.ensure_applicable(subtotal, region=cart.region)
    ensure_user_may_redeem(coupon, cart.user_id)

    discount = coupon.discount_for(subtotal)
    cart.upsert_coupon(coupon, discount)
    current_domain.repository_for(Cart).add(cart)

    logger.info("Coupon applied", cart_id=str(cart.id), code=coupon.code, discount=discount, subtotal=subtotal)
    return discount


def remove_coupon(cart_id, code=None) -> int:
    cart = get_cart(cart_id)
    removed = cart.detach_coupon(code)
    current_domain.repository_for(Cart).add(cart)
    return removed


@storefront.command(part_of="Cart")
class ApplyCoupon:
    cart_id = Identifier(required=True)
    code = String(required=True, max_length=50)


@storefront.command(part_of="Cart")
class RemoveCoupon:
    cart_id = Identifier(required=True)
    code = String(max_length=50)  # Optional: all coupons when omitted


@storefront.command_handler(part_of=Cart)
class CartCouponsHandler:
    @handle(ApplyCoupon)
    def apply_coupon(self, command):
        return apply_coupon(command.cart_id, command.code)

    @handle(RemoveCoupon)
    def remove_coupon(self, command):
        return remove_coupon(command.cart_id, command.code)
