"""Cart line management: add, update, remove, clear.

Adding a line normalizes the configuration, checks the product is sellable,
admits the quantity against live availability (bundle-aware), prices it and
merges it into a matching line or inserts a new one, all in one Unit of Work.
"""

import json
from dataclasses import dataclass, field

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.cart.identity import identity_from
from storefront.cart.lookup import get_cart, get_or_create_cart
from storefront.catalogue import reader
from storefront.config import max_cart_quantity, min_cart_quantity
from storefront.domain import storefront
from storefront.errors import InsufficientStockError, RequiredBundleItemUnavailable
from storefront.inventory.bundles import check_bundle_availability, ensure_valid_bundle_configuration
from storefront.inventory.reservation import get_available_stock
from storefront.pricing.calculator import calculate_price
from storefront.pricing.configuration import ProductConfiguration

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AddItemResult:
    cart_id: str
    item_id: str
    product_id: int
    quantity: int
    unit_price: float
    total_price: float
    configuration: dict
    merged: bool
    warnings: tuple[str, ...] = field(default_factory=tuple)


def ensure_quantity_in_range(quantity) -> None:
    low, high = min_cart_quantity(), max_cart_quantity()
    if quantity is None or not low <= quantity <= high:
        raise ValidationError({"quantity": [f"Quantity must be between {low} and {high}"]})


def admissible_quantity(
    product, config: ProductConfiguration, quantity: int = 1
) -> tuple[ProductConfiguration, int | None, list[str]]:
    """Resolve what can be sold of ``product`` configured as ``config``.

    Returns the (possibly trimmed) configuration, the available quantity
    (``None`` when a backorder policy makes it unbounded) and any warnings.
    Out-of-stock optional bundle members are dropped with a warning; an
    out-of-stock required member rejects the request.
    """
    if not product.is_bundle:
        if product.allows_backorders:
            return config, None, []
        return config, get_available_stock(product.id, config), []

    ensure_valid_bundle_configuration(product.id, config)
    availability = check_bundle_availability(product.id, config)

    missing = availability.unavailable(required=True)
    if missing:
        raise RequiredBundleItemUnavailable(item_name=missing[0].product_name, available=0, requested=quantity)

    warnings = []
    dropped = availability.unavailable(required=False)
    if dropped:
        names = ", ".join(m.product_name for m in dropped)
        warnings.append(f"Removed out-of-stock optional items: {names}")
        config = config.without_optional([m.bundle_item_id for m in dropped])
        availability = check_bundle_availability(product.id, config)
        logger.info(
            "Dropped out-of-stock optional bundle items",
            bundle_product_id=product.id,
            bundle_item_ids=[m.bundle_item_id for m in dropped],
        )

    return config, availability.available_quantity, warnings


def add_item(identity, product_id, quantity, configuration=None, region=None) -> AddItemResult:
    ensure_quantity_in_range(quantity)
    product = reader.get_active_product(product_id)
    config, available, warnings = admissible_quantity(product, ProductConfiguration.from_raw(configuration), quantity)

    cart = get_or_create_cart(identity, region=region)
    cart.ensure_active()

    canonical = config.canonical_json()
    existing = cart.find_line(product.id, canonical)
    total_quantity = quantity + (existing.quantity if existing else 0)
    ensure_quantity_in_range(total_quantity)

    if available is not None and total_quantity > available:
        raise InsufficientStockError(available=available, requested=total_quantity, subject=product.name)

    quote = calculate_price(product.id, config, total_quantity)
    item, merged = cart.add_line(product.id, quantity, canonical, quote.subtotal)
    current_domain.repository_for(Cart).add(cart)

    logger.info(
        "Item added to cart",
        cart_id=str(cart.id),
        product_id=product.id,
        quantity=quantity,
        merged=merged,
    )
    return AddItemResult(
        cart_id=str(cart.id),
        item_id=str(item.id),
        product_id=product.id,
        quantity=item.quantity,
        unit_price=item.unit_price,
        total_price=item.total_price,
        configuration=config.to_dict(),
        merged=merged,
        warnings=tuple(warnings),
    )


def update_item_quantity(cart_id, item_id, quantity) -> Cart:
    """Set a line's quantity after re-checking availability and repricing."""
    ensure_quantity_in_range(quantity)
    cart = get_cart(cart_id)
    cart.ensure_active()
    item = cart.item(item_id)

    product = reader.get_active_product(item.product_id)
    config, available, _ = admissible_quantity(product, item.config, quantity)
    if config.canonical_json() != item.configuration:
        raise InsufficientStockError(available=0, requested=quantity, subject=product.name)
    if available is not None and quantity > available:
        raise InsufficientStockError(available=available, requested=quantity, subject=product.name)

    quote = calculate_price(product.id, config, quantity)
    cart.reprice_line(item.id, quantity, quote.subtotal)
    current_domain.repository_for(Cart).add(cart)
    return cart


def remove_item(cart_id, item_id) -> Cart:
    cart = get_cart(cart_id)
    cart.remove_line(item_id)
    current_domain.repository_for(Cart).add(cart)
    return cart


def clear_cart(cart_id) -> Cart:
    cart = get_cart(cart_id)
    cart.ensure_active()
    cart.clear()
    current_domain.repository_for(Cart).add(cart)
    return cart


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@storefront.command(part_of="Cart")
class AddItemToCart:
    user_id = Identifier()
    session_id = String(max_length=255)
    product_id = Integer(required=True)
    quantity = Integer(required=True, min_value=1)
    configuration = Text()  # JSON product configuration
    region = String(max_length=2)


@storefront.command(part_of="Cart")
class UpdateCartItemQuantity:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True)


@storefront.command(part_of="Cart")
class RemoveCartItem:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@storefront.command(part_of="Cart")
class ClearCart:
    cart_id = Identifier(required=True)


@storefront.command_handler(part_of=Cart)
class CartItemsHandler:
    @handle(AddItemToCart)
    def add_item_to_cart(self, command):
        configuration = json.loads(command.configuration) if command.configuration else None
        return add_item(
            identity_from(session_id=command.session_id, user_id=command.user_id),
            command.product_id,
            command.quantity,
            configuration=configuration,
            region=command.region,
        )

    @handle(UpdateCartItemQuantity)
    def update_cart_item_quantity(self, command):
        update_item_quantity(command.cart_id, command.item_id, command.quantity)

    @handle(RemoveCartItem)
    def remove_cart_item(self, command):
        remove_item(command.cart_id, command.item_id)

    @handle(ClearCart)
    def clear_cart(self, command):
        clear_cart(command.cart_id)
