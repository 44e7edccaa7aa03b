"""Reservation expiry — releasing holds nobody paid for in time.

Product holds past their expiry stop counting against free stock as soon as
they lapse. Variation holds live in ``reserved_quantity`` counters and keep
counting until this runs, so for them the worst-case window is the
reservation TTL plus the sweep interval. Triggered periodically by
``sweeper.py`` or any external scheduler.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.inventory import ledger
from storefront.inventory.reservation import StockReservation
from storefront.utils.timestamps import is_past

logger = structlog.get_logger(__name__)


def _overdue(rows, as_of):
    return [r for r in rows if is_past(r.expires_at, as_of)]


def expire_product_holds(as_of) -> int:
    repo = current_domain.repository_for(StockReservation)
    expired_count = 0
    for reservation in _overdue(repo.all_pending(), as_of):
        try:
            reservation.expire()
            repo.add(reservation)
            expired_count += 1
            logger.info(
                "Expired stale reservation",
                reservation_id=str(reservation.id),
                order_id=str(reservation.order_id),
                expired_at=str(reservation.expires_at),
            )
        except (ValidationError, InvalidOperationError) as exc:
            logger.warning("Failed to expire reservation", reservation_id=str(reservation.id), error=str(exc))
    return expired_count


def expire_variation_holds(as_of) -> int:
    repo = current_domain.repository_for(ledger.VariationStockReservation)
    expired_count = 0
    for reservation in _overdue(repo.all_pending(), as_of):
        try:
            expired_count += ledger.expire_variation_reservations([reservation])
            logger.info(
                "Expired stale variation reservation",
                reservation_id=str(reservation.id),
                order_id=str(reservation.order_id),
                variation_option_id=reservation.variation_option_id,
            )
        except (ValidationError, InvalidOperationError) as exc:
            logger.warning(
                "Failed to expire variation reservation",
                reservation_id=str(reservation.id),
                error=str(exc),
            )
    return expired_count


@storefront.command(part_of="StockReservation")
class ExpireStaleReservations:
    as_of = DateTime()  # Optional: defaults to now


@storefront.command_handler(part_of=StockReservation)
class ExpireStaleReservationsHandler:
    @handle(ExpireStaleReservations)
    def expire_stale_reservations(self, command):
        as_of = command.as_of or datetime.now(UTC)
        logger.info("Checking for stale reservations", as_of=as_of.isoformat())

        products = expire_product_holds(as_of)
        variations = expire_variation_holds(as_of)

        logger.info("Stale reservation cleanup complete", product_holds=products, variation_holds=variations)
        return {"product_holds": products, "variation_holds": variations}
