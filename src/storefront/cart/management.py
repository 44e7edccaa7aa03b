"""Cart-level operations: fetch, merge guest into user, checkout validation."""

from collections import defaultdict

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart, CartStatus
from storefront.cart.events import GuestCartMerged
from storefront.cart.identity import Guest, User
from storefront.cart.lookup import find_cart, get_or_create_cart
from storefront.cart.totals import CartView, build_view
from storefront.catalogue import reader
from storefront.config import max_cart_quantity
from storefront.domain import storefront
from storefront.inventory.bundles import check_bundle_availability
from storefront.inventory.reservation import get_available_stock
from storefront.pricing.calculator import calculate_price

logger = structlog.get_logger(__name__)


def get_cart_with_items(identity, region=None) -> CartView:
    """The identity's cart joined with live product display data."""
    cart = get_or_create_cart(identity, region=region)
    return build_view(cart)


def get_cart_item_count(identity) -> int:
    cart = find_cart(identity)
    return cart.item_count if cart is not None else 0


def merge_guest_cart(session_id, user_id) -> Cart:
    """Move a guest cart's lines into the user's cart, then delete the guest cart.

    Matching lines (same product and configuration) are summed and repriced;
    lines whose product is gone or no longer priceable are dropped. Only an
    active guest cart is merged; one in checkout is left to its order.
    """
    guest_cart = find_cart(Guest(session_id=session_id))
    user_cart = get_or_create_cart(User(user_id=str(user_id)))
    if guest_cart is not None and guest_cart.status != CartStatus.ACTIVE.value:
        # A guest cart in checkout belongs to a pending order until it settles
        logger.info(
            "Guest cart not merged",
            guest_cart_id=str(guest_cart.id),
            status=guest_cart.status,
            cart_id=str(user_cart.id),
        )
        return user_cart
    if guest_cart is None or not guest_cart.items:
        if guest_cart is not None:
            current_domain.repository_for(Cart)._dao.delete(guest_cart)
        return user_cart

    user_cart.ensure_active("merged into")
    merged = 0
    for line in guest_cart.items:
        existing = user_cart.find_line(line.product_id, line.configuration)
        quantity = min(line.quantity + (existing.quantity if existing else 0), max_cart_quantity())
        try:
            quote = calculate_price(line.product_id, line.config, quantity)
        except (ObjectNotFoundError, ValidationError) as exc:
            logger.warning(
                "Skipping guest cart line during merge",
                guest_cart_id=str(guest_cart.id),
                product_id=line.product_id,
                error=str(exc),
            )
            continue

        if existing is not None:
            user_cart.reprice_line(existing.id, quantity, quote.subtotal)
        else:
            user_cart.add_line(line.product_id, quantity, line.configuration, quote.subtotal)
        merged += 1

    user_cart.raise_(
        GuestCartMerged(cart_id=str(user_cart.id), guest_cart_id=str(guest_cart.id), items_merged=merged)
    )

    repo = current_domain.repository_for(Cart)
    repo.add(user_cart)
    repo._dao.delete(guest_cart)

    logger.info("Guest cart merged", cart_id=str(user_cart.id), guest_cart_id=str(guest_cart.id), items=merged)
    return user_cart


def validate_cart_for_checkout(cart) -> tuple[bool, list[str]]:
    """Re-check every line against live product status and stock."""
    errors = []
    if cart.status != CartStatus.ACTIVE.value:
        errors.append(f"Cart is {cart.status}")
    if not cart.items:
        errors.append("Cart is empty")

    demand = defaultdict(int)
    lines = {}
    for item in cart.items:
        demand[(item.product_id, item.configuration)] += item.quantity
        lines[(item.product_id, item.configuration)] = item

    for key, quantity in demand.items():
        item = lines[key]
        product = reader.find_product(item.product_id)
        if product is None or not product.is_active:
            name = product.name if product else f"Product {item.product_id}"
            errors.append(f'Product "{name}" is no longer available')
            continue

        if product.is_bundle:
            available = check_bundle_availability(product.id, item.config).available_quantity
        elif product.allows_backorders:
            continue
        else:
            available = get_available_stock(product.id, item.config)

        if available < quantity:
            errors.append(f'Insufficient stock for "{product.name}". Only {available} available')

    return not errors, errors


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@storefront.command(part_of="Cart")
class MergeGuestCart:
    """Fold a guest session's cart into a signed-in user's cart."""

    session_id = String(required=True, max_length=255)
    user_id = Identifier(required=True)


@storefront.command_handler(part_of=Cart)
class CartManagementHandler:
    @handle(MergeGuestCart)
    def merge_guest_cart(self, command):
        return str(merge_guest_cart(command.session_id, command.user_id).id)
