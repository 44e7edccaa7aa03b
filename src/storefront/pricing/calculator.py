"""Deterministic pricing of a configured product.

Pricing is a pure read of catalogue data: it never looks at, or touches,
reservation state. The unit price is the product's regular price plus every
selected adjustment::

    subtotal = base + color + Σ variation options + Σ add-ons + bundle members
    total    = subtotal × quantity

Live sales are not folded into the unit price; carts subtract the sale
discount separately when totalling (see ``storefront.cart.totals``).
"""

from dataclasses import asdict, dataclass

from protean.exceptions import ValidationError

from storefront.catalogue import reader
from storefront.catalogue.variation import VariationType, is_truthy_selection
from storefront.pricing.configuration import ProductConfiguration


@dataclass(frozen=True)
class VariationAdjustment:
    variation_id: int
    variation_name: str
    option_id: int
    option_name: str
    amount: float


@dataclass(frozen=True)
class PriceQuote:
    product_id: int
    base_price: float
    color_adjustment: float | None
    variation_adjustments: tuple[VariationAdjustment, ...]
    addons_total: float
    bundle_required_total: float
    bundle_optional_total: float
    subtotal: float
    quantity: int
    total: float
    currency: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["variation_adjustments"] = [asdict(a) for a in self.variation_adjustments]
        return data


def _money(value) -> float:
    return round(float(value), 2)


# ---------------------------------------------------------------------------
# Required-selection rules
# ---------------------------------------------------------------------------
def _has_selection(variation, config: ProductConfiguration) -> bool:
    value = config.selection_for(variation.id)
    if variation.variation_type == VariationType.MODEL.value:
        return config.model_variation_id is not None or value is not None
    if variation.variation_type == VariationType.BOOLEAN.value:
        return value is not None
    if variation.variation_type == VariationType.TEXT.value:
        return value is not None and not isinstance(value, bool) and str(value).strip() != ""
    return value is not None and not isinstance(value, bool)


def required_selection_errors(product_id, config, variations=None, addons=None) -> list[str]:
    """Messages for every required variation or add-on missing from ``config``."""
    config = ProductConfiguration.from_raw(config)
    if variations is None:
        variations = reader.variations_for(product_id)
    if addons is None:
        addons = reader.addons_for(product_id)

    errors = [f"{v.name} is required" for v in variations if v.is_required and not _has_selection(v, config)]

    chosen_addons = {a.addon_id for a in config.addons}
    errors.extend(f"{a.name} is required" for a in addons if a.is_required and a.id not in chosen_addons)
    return errors


def validate_configuration(product_id, config) -> tuple[bool, list[str]]:
    """Non-raising form of the required-selection check."""
    errors = required_selection_errors(product_id, config)
    return not errors, errors


# ---------------------------------------------------------------------------
# Adjustments
# ---------------------------------------------------------------------------
def variation_adjustments(config: ProductConfiguration, variations) -> list[VariationAdjustment]:
    """Price adjustments for the options selected in ``config``."""
    adjustments = []
    model_counted = False

    def _add(variation, option):
        adjustments.append(
            VariationAdjustment(
                variation_id=variation.id,
                variation_name=variation.name,
                option_id=option.id,
                option_name=option.option_name,
                amount=option.price_adjustment or 0.0,
            )
        )

    if config.model_variation_id is not None:
        for variation in variations:
            if variation.variation_type != VariationType.MODEL.value:
                continue
            option = variation.option(config.model_variation_id)
            if option is not None:
                _add(variation, option)
                model_counted = True
                break

    for variation in variations:
        value = config.selection_for(variation.id)
        if value is None:
            continue
        kind = variation.variation_type
        if kind == VariationType.TEXT.value:
            continue
        if kind == VariationType.MODEL.value and model_counted:
            continue
        if kind == VariationType.BOOLEAN.value and not is_truthy_selection(value):
            continue
        option = variation.resolve_option(value)
        if option is not None:
            _add(variation, option)

    return adjustments


def _addons_total(config: ProductConfiguration, addons) -> float:
    by_id = {a.id: a for a in addons}
    total = 0.0
    for selection in config.addons:
        addon = by_id.get(selection.addon_id)
        if addon is None:
            continue
        total += addon.price_for(selection.option_id)
    return total


def _bundle_totals(product, config: ProductConfiguration) -> tuple[float, float]:
    """(required members' adjustments, selected optional members' prices)."""
    required_total = 0.0
    optional_total = 0.0
    selected = set(config.selected_optional())

    for item in reader.bundle_items_for(product.id):
        if not item.is_required and item.id not in selected:
            continue
        sub_config = (
            config.bundle_items.configuration_for(item.id) if config.bundle_items else ProductConfiguration()
        )
        adjustment = sum(a.amount for a in variation_adjustments(sub_config, reader.variations_for(item.product_id)))
        adjustment += item.price_adjustment or 0.0

        if item.is_required:
            required_total += adjustment
        else:
            member = reader.find_product(item.product_id)
            optional_total += (member.regular_price if member else 0.0) + adjustment

    return required_total, optional_total


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def calculate_price(product_id, config, quantity: int = 1) -> PriceQuote:
    """Price ``quantity`` units of a product configured as ``config``.

    Raises ``ObjectNotFoundError`` for unknown or inactive products and
    ``ValidationError`` for a bad quantity or a missing required selection.
    """
    if quantity is None or quantity < 1:
        raise ValidationError({"quantity": ["Quantity must be at least 1"]})

    product = reader.get_active_product(product_id)
    config = ProductConfiguration.from_raw(config)
    variations = reader.variations_for(product.id)
    addons = reader.addons_for(product.id)

    errors = required_selection_errors(product.id, config, variations=variations, addons=addons)
    if errors:
        raise ValidationError({"configuration": errors})

    base_price = product.regular_price or 0.0
    color_adjustment = 0.0 if config.color_id is not None else None
    adjustments = tuple(variation_adjustments(config, variations))
    addons_total = _addons_total(config, addons)

    bundle_required_total, bundle_optional_total = 0.0, 0.0
    if product.is_bundle:
        bundle_required_total, bundle_optional_total = _bundle_totals(product, config)

    subtotal = _money(
        base_price
        + (color_adjustment or 0.0)
        + sum(a.amount for a in adjustments)
        + addons_total
        + bundle_required_total
        + bundle_optional_total
    )

    return PriceQuote(
        product_id=product.id,
        base_price=_money(base_price),
        color_adjustment=color_adjustment,
        variation_adjustments=adjustments,
        addons_total=_money(addons_total),
        bundle_required_total=_money(bundle_required_total),
        bundle_optional_total=_money(bundle_optional_total),
        subtotal=subtotal,
        quantity=quantity,
        total=_money(subtotal * quantity),
        currency=product.currency or "USD",
    )


def price_range(product_id) -> dict:
    """Cheapest and most expensive configurable unit price of a product."""
    product = reader.get_active_product(product_id)
    low = high = product.regular_price or 0.0

    for variation in reader.variations_for(product.id):
        amounts = [o.price_adjustment or 0.0 for o in variation.options]
        if not amounts:
            continue
        low += min(amounts) if variation.is_required else min(0.0, min(amounts))
        high += max(0.0, max(amounts))

    for addon in reader.addons_for(product.id):
        prices = [o.price for o in addon.options if o.is_available] or [addon.base_price or 0.0]
        if addon.is_required:
            low += min(prices)
        high += max(prices)

    return {"min": _money(low), "max": _money(high), "currency": product.currency or "USD"}
