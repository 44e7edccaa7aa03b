"""Resolving an identity to its cart, with read-time expiry self-healing."""

import structlog
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart, CartStatus
from storefront.cart.identity import CartIdentity, Guest, User
from storefront.domain import storefront
from storefront.errors import not_found
from storefront.utils.timestamps import as_utc

logger = structlog.get_logger(__name__)


@storefront.repository(part_of=Cart)
class CartRepository:
    def for_identity(self, identity: CartIdentity) -> Cart | None:
        """Most recently touched non-converted cart of a user or guest session."""
        if isinstance(identity, User):
            carts = self._dao.query.filter(user_id=identity.user_id).all().items
        else:
            carts = [c for c in self._dao.query.filter(session_id=identity.session_id).all().items if not c.user_id]

        carts = [c for c in carts if c.status != CartStatus.CONVERTED.value]
        if not carts:
            return None
        return max(carts, key=lambda c: as_utc(c.updated_at or c.created_at))

    def expired_guest_carts(self, as_of=None) -> list[Cart]:
        carts = self._dao.query.filter(status=CartStatus.ACTIVE.value).all().items
        return [c for c in carts if c.is_guest and c.is_expired(as_of)]


def find_cart(identity: CartIdentity) -> Cart | None:
    return current_domain.repository_for(Cart).for_identity(identity)


def get_cart(cart_id) -> Cart:
    return current_domain.repository_for(Cart).get(cart_id)


def require_cart(identity: CartIdentity) -> Cart:
    cart = find_cart(identity)
    if cart is None:
        key = identity.user_id if isinstance(identity, User) else identity.session_id
        raise not_found("Cart", key)
    return cart


def discard_cart(cart: Cart, reason: str) -> None:
    """Empty a cart and delete its record."""
    repo = current_domain.repository_for(Cart)
    cart.clear(reason=reason)
    repo.add(cart)
    repo._dao.delete(cart)


def get_or_create_cart(identity: CartIdentity, region=None) -> Cart:
    """The identity's live cart, creating one when none exists.

    An expired active cart is emptied and replaced by a fresh one with a new
    id and a new expiry window. Carts in checkout are left for the order to
    settle.
    """
    repo = current_domain.repository_for(Cart)
    cart = repo.for_identity(identity)

    if cart is not None and cart.status == CartStatus.ACTIVE.value and cart.is_expired():
        logger.info("Replacing expired cart", cart_id=str(cart.id), expired_at=str(cart.expires_at))
        region = region or cart.region
        discard_cart(cart, reason="expired")
        cart = None

    if cart is None:
        cart = Cart.create(identity, region=region)
        repo.add(cart)
        logger.info(
            "Cart created",
            cart_id=str(cart.id),
            guest=isinstance(identity, Guest),
        )
    return cart
