"""Cart aggregate — lines of configured products, applied coupons, checkout hand-off.

Lifecycle::

    active ──begin_checkout──> checkout ──convert──> converted
       ^                          │
       └────────restore───────────┘

Lines snapshot ``unit_price``/``total_price`` when added or updated; reading a
cart never reprices it. Two lines are the same line iff product id and
canonical configuration JSON match, so adding an existing configuration merges
into that line.
"""

import json
from datetime import timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from storefront.cart.events import (
    CartCheckoutStarted,
    CartCleared,
    CartConverted,
    CartItemAdded,
    CartItemQuantityUpdated,
    CartItemRemoved,
    CartRestored,
    CouponAppliedToCart,
    CouponRemovedFromCart,
)
from storefront.cart.identity import CartIdentity, Guest, User
from storefront.config import cart_ttl_days, default_region
from storefront.coupon.coupon import normalize_code
from storefront.domain import storefront
from storefront.errors import not_found
from storefront.pricing.configuration import ProductConfiguration
from storefront.utils.timestamps import is_past, utcnow


class CartStatus(Enum):
    ACTIVE = "active"
    CHECKOUT = "checkout"
    CONVERTED = "converted"


@storefront.entity(part_of="Cart")
class CartItem:
    product_id = Integer(required=True)
    quantity = Integer(required=True, min_value=1)
    configuration = Text(default="{}")  # Canonical JSON of the normalized configuration
    unit_price = Float(default=0.0)
    total_price = Float(default=0.0)
    added_at = DateTime()

    @property
    def config(self) -> ProductConfiguration:
        return ProductConfiguration.from_raw(self.configuration or "{}")

    @property
    def configuration_dict(self) -> dict:
        return json.loads(self.configuration or "{}")


@storefront.entity(part_of="Cart")
class CartCoupon:
    coupon_id = Identifier(required=True)
    code = String(required=True, max_length=50)
    discount_type = String(max_length=20)
    discount_amount = Float(default=0.0)
    applied_at = DateTime()


@storefront.aggregate
class Cart:
    user_id = Identifier()
    session_id = String(max_length=255)
    region = String(max_length=2, default="us")
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    items = HasMany(CartItem)
    coupons = HasMany(CartCoupon)
    expires_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def cart_must_belong_to_exactly_one_identity(self):
        if bool(self.user_id) == bool(self.session_id):
            raise ValidationError({"identity": ["A cart belongs to either a user or a guest session"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, identity: CartIdentity, region=None):
        now = utcnow()
        return cls(
            user_id=identity.user_id if isinstance(identity, User) else None,
            session_id=identity.session_id if isinstance(identity, Guest) else None,
            region=(region or default_region()).lower(),
            status=CartStatus.ACTIVE.value,
            expires_at=now + timedelta(days=cart_ttl_days()),
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def identity(self) -> CartIdentity:
        return User(user_id=str(self.user_id)) if self.user_id else Guest(session_id=self.session_id)

    @property
    def is_guest(self) -> bool:
        return not self.user_id

    def is_expired(self, as_of=None) -> bool:
        return is_past(self.expires_at, as_of)

    @property
    def subtotal(self) -> float:
        return round(sum(item.total_price or 0.0 for item in self.items), 2)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def item(self, item_id) -> CartItem:
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise not_found("CartItem", item_id)
        return item

    def find_line(self, product_id, configuration_json) -> CartItem | None:
        return next(
            (i for i in self.items if i.product_id == product_id and i.configuration == configuration_json),
            None,
        )

    def coupon(self, code) -> CartCoupon | None:
        wanted = normalize_code(code)
        return next((c for c in self.coupons if c.code == wanted), None)

    # -------------------------------------------------------------------
    # Guards and bookkeeping
    # -------------------------------------------------------------------
    def ensure_active(self, action="modified"):
        if self.status != CartStatus.ACTIVE.value:
            raise ValidationError({"status": [f"Cart cannot be {action} while {self.status}"]})

    def touch(self):
        """Record activity and push the expiry window forward."""
        now = utcnow()
        self.updated_at = now
        self.expires_at = now + timedelta(days=cart_ttl_days())

    # -------------------------------------------------------------------
    # Lines
    # -------------------------------------------------------------------
    def add_line(self, product_id, quantity, configuration_json, unit_price):
        """Insert a line, or merge into the matching one. Returns (item, merged)."""
        self.ensure_active()
        existing = self.find_line(product_id, configuration_json)
        merged = existing is not None

        if merged:
            existing.quantity += quantity
            existing.unit_price = unit_price
            existing.total_price = round(unit_price * existing.quantity, 2)
            item = existing
        else:
            item = CartItem(
                product_id=product_id,
                quantity=quantity,
                configuration=configuration_json,
                unit_price=unit_price,
                total_price=round(unit_price * quantity, 2),
                added_at=utcnow(),
            )
            self.add_items(item)

        self.touch()
        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                product_id=product_id,
                quantity=quantity,
                unit_price=unit_price,
                merged=merged,
            )
        )
        return item, merged

    def reprice_line(self, item_id, quantity, unit_price):
        self.ensure_active()
        item = self.item(item_id)
        previous = item.quantity
        item.quantity = quantity
        item.unit_price = unit_price
        item.total_price = round(unit_price * quantity, 2)
        self.touch()
        self.raise_(
            CartItemQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item.id),
                previous_quantity=previous,
                new_quantity=quantity,
            )
        )
        return item

    def remove_line(self, item_id):
        self.ensure_active()
        item = self.item(item_id)
        self.remove_items(item)
        self.touch()
        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    def clear(self, reason="cleared"):
        """Drop every line and coupon. Allowed in any status."""
        for item in list(self.items):
            self.remove_items(item)
        for coupon in list(self.coupons):
            self.remove_coupons(coupon)
        self.updated_at = utcnow()
        self.raise_(CartCleared(cart_id=str(self.id), reason=reason))

    # -------------------------------------------------------------------
    # Coupons
    # -------------------------------------------------------------------
    def upsert_coupon(self, coupon, discount_amount):
        """Attach a coupon, or refresh the discount snapshot if already attached."""
        self.ensure_active()
        existing = self.coupon(coupon.code)
        if existing is not None:
            existing.discount_amount = discount_amount
            existing.applied_at = utcnow()
        else:
            self.add_coupons(
                CartCoupon(
                    coupon_id=str(coupon.id),
                    code=coupon.code,
                    discount_type=coupon.discount_type,
                    discount_amount=discount_amount,
                    applied_at=utcnow(),
                )
            )
        self.touch()
        self.raise_(
            CouponAppliedToCart(
                cart_id=str(self.id),
                coupon_id=str(coupon.id),
                code=coupon.code,
                discount_amount=discount_amount,
            )
        )

    def detach_coupon(self, code=None):
        """Remove one coupon by code, or all of them when no code is given."""
        self.ensure_active()
        if code is None:
            targets = list(self.coupons)
        else:
            found = self.coupon(code)
            if found is None:
                raise not_found("CartCoupon", normalize_code(code))
            targets = [found]

        for coupon in targets:
            self.remove_coupons(coupon)
            self.raise_(CouponRemovedFromCart(cart_id=str(self.id), code=coupon.code))
        self.touch()
        return len(targets)

    # -------------------------------------------------------------------
    # Checkout hand-off
    # -------------------------------------------------------------------
    def begin_checkout(self):
        self.ensure_active("checked out")
        if not self.items:
            raise ValidationError({"cart": ["Cart is empty"]})
        self.status = CartStatus.CHECKOUT.value
        self.updated_at = utcnow()
        self.raise_(CartCheckoutStarted(cart_id=str(self.id)))

    def convert(self):
        """Payment succeeded: lines are consumed, the record stays as a marker."""
        if self.status == CartStatus.CONVERTED.value:
            return
        self.clear(reason="converted")
        self.status = CartStatus.CONVERTED.value
        self.raise_(CartConverted(cart_id=str(self.id)))

    def restore(self):
        """Payment failed or was cancelled: hand the cart back to the shopper."""
        if self.status != CartStatus.CHECKOUT.value:
            return
        self.status = CartStatus.ACTIVE.value
        self.touch()
        self.raise_(CartRestored(cart_id=str(self.id)))
