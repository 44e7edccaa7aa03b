"""Storefront bounded context: stock holds, pricing, carts and checkout.

A single domain so that availability checks, reservation inserts, counter
updates and cart/order writes share one Unit of Work per command.
"""

import structlog
from protean.domain import Domain

from storefront.utils.logging import configure_logging

configure_logging()

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
