"""Checkout hand-off between a cart and the order placed from it."""

from protean.utils.globals import current_domain

from storefront.cart.cart import Cart


def _transition(cart_id, action) -> Cart:
    repo = current_domain.repository_for(Cart)
    cart = repo.get(cart_id)
    getattr(cart, action)()
    repo.add(cart)
    return cart


def begin_checkout(cart_id) -> Cart:
    """Freeze the cart while an order attempt is in flight."""
    return _transition(cart_id, "begin_checkout")


def clear_cart_after_payment(cart_id) -> Cart:
    """Payment succeeded: drop the lines and keep the record as a converted marker."""
    return _transition(cart_id, "convert")


def restore_cart_from_checkout(cart_id) -> Cart:
    """Payment failed or was cancelled: make the cart editable again."""
    return _transition(cart_id, "restore")
