"""Product aggregate: the catalogue facts the checkout core reads.

Products are owned by the catalogue admin; the storefront reads prices,
stock, bundle flag and backorder policy, and writes ``stock`` only on the
confirm path of a paid order (or an explicit admin adjustment).
"""

from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from storefront.domain import storefront
from storefront.utils.timestamps import as_utc, utcnow

BACKORDER_ENABLED_VALUES = {"yes", "1", "true", "on"}


class ProductStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


def backorders_enabled(setting) -> bool:
    """Interpret the free-text backorder setting."""
    if setting is None:
        return False
    return str(setting).strip().lower() in BACKORDER_ENABLED_VALUES


@storefront.aggregate
class Product:
    id = Integer(identifier=True)
    name = String(required=True, max_length=255)
    sku = String(max_length=50)
    regular_price = Float(required=True, min_value=0.0)
    sale_price = Float(min_value=0.0)
    sale_starts_at = DateTime()
    sale_ends_at = DateTime()
    stock = Integer(default=0)
    is_bundle = Boolean(default=False)
    backorders = String(max_length=20, default="no")
    status = String(choices=ProductStatus, default=ProductStatus.ACTIVE.value)
    image_url = String(max_length=500)
    currency = String(max_length=3, default="USD")
    last_reserved_at = DateTime()

    @invariant.post
    def sale_price_must_not_exceed_regular_price(self):
        if self.sale_price is not None and self.sale_price > self.regular_price:
            raise ValidationError({"sale_price": ["Sale price cannot exceed the regular price"]})

    @property
    def allows_backorders(self) -> bool:
        return backorders_enabled(self.backorders)

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE.value

    def is_on_sale(self, as_of=None) -> bool:
        """A sale is live when a sale price exists and ``as_of`` lies inside the window."""
        if self.sale_price is None:
            return False
        now = as_utc(as_of or utcnow())
        if self.sale_starts_at and as_utc(self.sale_starts_at) > now:
            return False
        if self.sale_ends_at and as_utc(self.sale_ends_at) < now:
            return False
        return True

    def sale_discount(self, as_of=None) -> float:
        """Per-unit saving while a sale is live, otherwise 0."""
        if not self.is_on_sale(as_of):
            return 0.0
        return round(self.regular_price - self.sale_price, 2)

    def savings(self, as_of=None) -> dict | None:
        if not self.is_on_sale(as_of):
            return None
        saving = self.sale_discount(as_of)
        percentage = round(saving / self.regular_price * 100) if self.regular_price else 0
        return {"has_sale": True, "savings": saving, "percentage": percentage}

    # -------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------
    def deduct_stock(self, quantity):
        """Remove sold units. May go negative only under a backorder policy."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        remaining = self.stock - quantity
        if remaining < 0 and not self.allows_backorders:
            remaining = 0
        self.stock = remaining

    def mark_reserved(self, at=None):
        """Stamp a new hold so concurrent holds on this product collide on its version."""
        self.last_reserved_at = at or utcnow()

    def adjust_stock(self, delta):
        """Admin correction; never drops below zero."""
        self.stock = max(0, (self.stock or 0) + delta)
