"""Domain events for the Cart aggregate."""

from protean.fields import Boolean, Float, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Cart")
class CartItemAdded:
    """A configured product was added, or merged into an existing line."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Integer(required=True)
    quantity = Integer(required=True)
    unit_price = Float(required=True)
    merged = Boolean(default=False)


@storefront.event(part_of="Cart")
class CartItemQuantityUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="Cart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@storefront.event(part_of="Cart")
class CartCleared:
    __version__ = 1

    cart_id = Identifier(required=True)
    reason = String(max_length=50)


@storefront.event(part_of="Cart")
class CouponAppliedToCart:
    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_id = Identifier(required=True)
    code = String(required=True)
    discount_amount = Float(required=True)


@storefront.event(part_of="Cart")
class CouponRemovedFromCart:
    __version__ = 1

    cart_id = Identifier(required=True)
    code = String(required=True)


@storefront.event(part_of="Cart")
class CartCheckoutStarted:
    """An order attempt began; the cart is frozen until payment settles."""

    __version__ = 1

    cart_id = Identifier(required=True)


@storefront.event(part_of="Cart")
class CartConverted:
    """Payment succeeded; the cart's lines were consumed by an order."""

    __version__ = 1

    cart_id = Identifier(required=True)


@storefront.event(part_of="Cart")
class CartRestored:
    """Payment failed or was cancelled; the cart is editable again."""

    __version__ = 1

    cart_id = Identifier(required=True)


@storefront.event(part_of="Cart")
class GuestCartMerged:
    __version__ = 1

    cart_id = Identifier(required=True)
    guest_cart_id = Identifier(required=True)
    items_merged = Integer(required=True)
