"""Bundle composer: availability and configuration rules for bundle products.

A bundle's availability is the minimum over every required member and every
*selected* optional member, each checked through the variation ledger with
that member's own sub-configuration. Unselected optional members are ignored.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError

from storefront.catalogue import reader
from storefront.inventory import ledger
from storefront.pricing.calculator import required_selection_errors
from storefront.pricing.configuration import ProductConfiguration

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BundleMemberStock:
    bundle_item_id: int
    product_id: int
    product_name: str
    required: bool
    available: int


@dataclass(frozen=True)
class BundleStockResult:
    available: bool
    available_quantity: int
    items: tuple[BundleMemberStock, ...]

    def unavailable(self, required: bool) -> list[BundleMemberStock]:
        return [i for i in self.items if i.required == required and i.available <= 0]


def _member_configuration(config: ProductConfiguration, bundle_item_id) -> ProductConfiguration:
    if config.bundle_items is None:
        return ProductConfiguration()
    return config.bundle_items.configuration_for(bundle_item_id)


def check_bundle_availability(bundle_product_id, config) -> BundleStockResult:
    """Availability of a bundle given the shopper's optional picks and member configurations."""
    config = ProductConfiguration.from_raw(config)
    selected = set(config.selected_optional())

    members = []
    for item in reader.bundle_items_for(bundle_product_id):
        if not item.is_required and item.id not in selected:
            continue
        result = ledger.check_availability(item.product_id, _member_configuration(config, item.id))
        per_bundle = result.available_quantity // (item.quantity or 1)
        members.append(
            BundleMemberStock(
                bundle_item_id=item.id,
                product_id=item.product_id,
                product_name=item.label,
                required=item.is_required,
                available=per_bundle,
            )
        )

    if not members:
        return BundleStockResult(available=False, available_quantity=0, items=())

    quantity = min(m.available for m in members)
    return BundleStockResult(available=quantity > 0, available_quantity=quantity, items=tuple(members))


def bundle_configuration_errors(bundle_product_id, config) -> dict[str, list[str]]:
    """Per-item messages for members whose configuration misses required selections."""
    config = ProductConfiguration.from_raw(config)
    items = reader.bundle_items_for(bundle_product_id)
    known_optional = {i.id for i in items if not i.is_required}
    selected = set(config.selected_optional())

    errors: dict[str, list[str]] = {}
    unknown = sorted(selected - known_optional)
    if unknown:
        errors["selected_optional"] = [f"Unknown optional bundle items: {unknown}"]

    for item in items:
        if not item.is_configurable:
            continue
        if not item.is_required and item.id not in selected:
            continue
        messages = required_selection_errors(item.product_id, _member_configuration(config, item.id))
        if messages:
            errors[f"bundle_item_{item.id}"] = [f"{item.label}: {message}" for message in messages]
    return errors


def validate_bundle_configuration(bundle_product_id, config) -> tuple[bool, dict[str, list[str]]]:
    errors = bundle_configuration_errors(bundle_product_id, config)
    return not errors, errors


def ensure_valid_bundle_configuration(bundle_product_id, config) -> None:
    errors = bundle_configuration_errors(bundle_product_id, config)
    if errors:
        raise ValidationError(errors)
