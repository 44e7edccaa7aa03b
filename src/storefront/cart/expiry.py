"""Expired guest cart cleanup.

User carts heal themselves when next read (see ``lookup.get_or_create_cart``);
abandoned guest carts have no owner coming back, so the sweeper deletes them.
"""

import structlog
from protean import handle
from protean.fields import DateTime
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.domain import storefront
from storefront.utils.timestamps import utcnow

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Cart")
class CleanupExpiredCarts:
    as_of = DateTime()  # Optional: defaults to now


@storefront.command_handler(part_of=Cart)
class CleanupExpiredCartsHandler:
    @handle(CleanupExpiredCarts)
    def cleanup_expired_carts(self, command):
        as_of = command.as_of or utcnow()
        repo = current_domain.repository_for(Cart)

        expired = repo.expired_guest_carts(as_of)
        if not expired:
            logger.info("No expired guest carts found")
            return 0

        for cart in expired:
            cart.clear(reason="expired")
            repo.add(cart)
            repo._dao.delete(cart)

        logger.info("Expired guest carts removed", count=len(expired), as_of=str(as_of))
        return len(expired)
