"""ProductVariation aggregate and its options.

A variation (``Size``, ``Mount type``, ``Include cable?``) belongs to a
product; each ``VariationOption`` carries a price adjustment and, when the
variation tracks stock, its own stock ledger::

    free = max(0, stock_quantity - reserved_quantity)

``reserved_quantity`` follows pending holds. The hold path reads ``free``
and bumps the counter on the same aggregate write, so two holds on one
variation cannot both pass against the same stale counter within a commit.
"""

from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, HasMany, Integer, String

from storefront.domain import storefront
from storefront.errors import InsufficientStockError

BOOLEAN_TRUE_VALUES = {"true", "1", "yes", "on"}


class VariationType(Enum):
    MODEL = "model"
    DROPDOWN = "dropdown"
    IMAGE = "image"
    BOOLEAN = "boolean"
    TEXT = "text"


def is_truthy_selection(value) -> bool:
    """Boolean selections may arrive as ``True``, ``1``, ``"true"`` or ``"1"``."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in BOOLEAN_TRUE_VALUES


@storefront.entity(part_of="ProductVariation")
class VariationOption:
    id = Integer(identifier=True)
    option_name = String(required=True, max_length=100)
    price_adjustment = Float(default=0.0)
    stock_quantity = Integer(default=0)
    reserved_quantity = Integer(default=0)
    is_default = Boolean(default=False)
    sort_order = Integer(default=0)

    @property
    def free(self) -> int:
        return max(0, (self.stock_quantity or 0) - (self.reserved_quantity or 0))


@storefront.aggregate
class ProductVariation:
    id = Integer(identifier=True)
    product_id = Integer(required=True)
    name = String(required=True, max_length=100)
    variation_type = String(choices=VariationType, default=VariationType.DROPDOWN.value)
    is_required = Boolean(default=False)
    tracks_stock = Boolean(default=False)
    sort_order = Integer(default=0)
    options = HasMany(VariationOption)

    # -------------------------------------------------------------------
    # Option lookup
    # -------------------------------------------------------------------
    def option(self, option_id):
        return next((o for o in self.options if o.id == option_id), None)

    def option_named(self, name):
        wanted = name.strip().lower()
        return next((o for o in self.options if o.option_name.strip().lower() == wanted), None)

    def resolve_option(self, value):
        """Map a configuration value onto an option row, or None.

        Boolean variations resolve to the option named "Yes" or "No"; every
        other type selects by option id.
        """
        if value is None:
            return None
        if self.variation_type == VariationType.BOOLEAN.value:
            return self.option_named("Yes" if is_truthy_selection(value) else "No")
        if self.variation_type == VariationType.TEXT.value or isinstance(value, bool):
            return None
        try:
            return self.option(int(value))
        except (TypeError, ValueError):
            return None

    def _require_option(self, option_id):
        option = self.option(option_id)
        if option is None:
            raise ValidationError({"variation_option_id": [f"Option {option_id} does not belong to variation {self.id}"]})
        return option

    # -------------------------------------------------------------------
    # Stock ledger
    # -------------------------------------------------------------------
    def hold(self, option_id, quantity):
        """Claim ``quantity`` units of an option for a pending reservation."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        option = self._require_option(option_id)
        if quantity > option.free:
            raise InsufficientStockError(
                available=option.free,
                requested=quantity,
                subject=f"{self.name}: {option.option_name}",
            )
        option.reserved_quantity = (option.reserved_quantity or 0) + quantity

    def confirm(self, option_id, quantity):
        """Turn a hold into a sale: both counters drop, floored at zero."""
        option = self._require_option(option_id)
        option.stock_quantity = max(0, (option.stock_quantity or 0) - quantity)
        option.reserved_quantity = max(0, (option.reserved_quantity or 0) - quantity)

    def release(self, option_id, quantity):
        """Give a hold back to the pool."""
        option = self._require_option(option_id)
        option.reserved_quantity = max(0, (option.reserved_quantity or 0) - quantity)

    def adjust_stock(self, option_id, delta):
        option = self._require_option(option_id)
        option.stock_quantity = max(0, (option.stock_quantity or 0) + delta)
        return option.stock_quantity
