"""Read helpers over the catalogue aggregates.

Thin wrappers around ``current_domain.repository_for`` used by pricing,
stock and cart code so that lookups and ordering live in one place.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.catalogue.addon import ProductAddon
from storefront.catalogue.bundle import BundleItem
from storefront.catalogue.product import Product
from storefront.catalogue.variation import ProductVariation
from storefront.errors import not_found


def get_product(product_id) -> Product:
    return current_domain.repository_for(Product).get(product_id)


def get_active_product(product_id) -> Product:
    """Fetch a product that can be sold. Inactive products read as missing."""
    product = get_product(product_id)
    if not product.is_active:
        raise not_found("Product", product_id)
    return product


def find_product(product_id) -> Product | None:
    try:
        return get_product(product_id)
    except ObjectNotFoundError:
        return None


def variations_for(product_id) -> list[ProductVariation]:
    variations = (
        current_domain.repository_for(ProductVariation)._dao.query.filter(product_id=product_id).all().items
    )
    return sorted(variations, key=lambda v: (v.sort_order or 0, v.id))


def tracked_variations_for(product_id) -> list[ProductVariation]:
    return [v for v in variations_for(product_id) if v.tracks_stock]


def get_variation(variation_id) -> ProductVariation:
    return current_domain.repository_for(ProductVariation).get(variation_id)


def addons_for(product_id) -> list[ProductAddon]:
    addons = current_domain.repository_for(ProductAddon)._dao.query.filter(product_id=product_id).all().items
    return sorted(addons, key=lambda a: a.id)


def bundle_items_for(bundle_product_id) -> list[BundleItem]:
    return current_domain.repository_for(BundleItem).for_bundle(bundle_product_id)
