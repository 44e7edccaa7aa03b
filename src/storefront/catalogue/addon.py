"""Product add-ons: optional (or required) extras priced on top of a product."""

from protean.fields import Boolean, Float, HasMany, Integer, String

from storefront.domain import storefront


@storefront.entity(part_of="ProductAddon")
class AddonOption:
    id = Integer(identifier=True)
    option_name = String(required=True, max_length=100)
    price = Float(default=0.0)
    is_available = Boolean(default=True)


@storefront.aggregate
class ProductAddon:
    id = Integer(identifier=True)
    product_id = Integer(required=True)
    name = String(required=True, max_length=100)
    base_price = Float(default=0.0)
    is_required = Boolean(default=False)
    options = HasMany(AddonOption)

    def option(self, option_id):
        return next((o for o in self.options if o.id == option_id), None)

    def price_for(self, option_id=None) -> float:
        """Option price when an option is chosen, otherwise the add-on's own price."""
        if option_id is None:
            return self.base_price or 0.0
        option = self.option(option_id)
        return option.price if option is not None else 0.0
