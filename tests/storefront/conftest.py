import pytest
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    from storefront.gateway import reset_gateway

    with storefront_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()
    reset_gateway()


# ---------------------------------------------------------------------------
# Catalogue builders
# ---------------------------------------------------------------------------
@pytest.fixture
def make_product():
    from storefront.catalogue.product import Product

    def _make(product_id, stock=10, price=100.0, **kwargs):
        kwargs.setdefault("name", f"Product {product_id}")
        product = Product(id=product_id, regular_price=price, stock=stock, **kwargs)
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture
def make_variation():
    """Options are (option_id, name, price_adjustment, stock_quantity) tuples."""
    from storefront.catalogue.variation import ProductVariation, VariationOption

    def _make(variation_id, product_id, options, name=None, tracks_stock=True, **kwargs):
        variation = ProductVariation(
            id=variation_id,
            product_id=product_id,
            name=name or f"Variation {variation_id}",
            tracks_stock=tracks_stock,
            options=[
                VariationOption(id=option_id, option_name=option_name, price_adjustment=adjustment, stock_quantity=stock)
                for option_id, option_name, adjustment, stock in options
            ],
            **kwargs,
        )
        current_domain.repository_for(ProductVariation).add(variation)
        return variation

    return _make


@pytest.fixture
def make_bundle_item():
    from storefront.catalogue.bundle import BundleItem, BundleItemType

    def _make(item_id, bundle_product_id, product_id, required=True, **kwargs):
        item = BundleItem(
            id=item_id,
            bundle_product_id=bundle_product_id,
            product_id=product_id,
            item_type=BundleItemType.REQUIRED.value if required else BundleItemType.OPTIONAL.value,
            **kwargs,
        )
        current_domain.repository_for(BundleItem).add(item)
        return item

    return _make


@pytest.fixture
def make_coupon():
    from storefront.coupon.coupon import Coupon

    def _make(code="SAVE10", discount_type="percentage", discount_value=10.0, **kwargs):
        coupon = Coupon.create(code=code, discount_type=discount_type, discount_value=discount_value, **kwargs)
        current_domain.repository_for(Coupon).add(coupon)
        return coupon

    return _make
