"""Product-level stock reservations.

A ``StockReservation`` is a time-boxed hold on whole-product stock, tied to
an order. Holds never touch ``Product.stock``; only confirmation (payment
succeeded) deducts real stock::

    free = product.stock - Σ quantity of live (pending, unexpired) holds

Products with a backorder policy accept holds beyond ``free``; the shortfall
is recorded on the ``StockReserved`` event.
"""

from collections import defaultdict

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.catalogue import reader
from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.errors import InsufficientStockError
from storefront.inventory import ledger
from storefront.inventory.events import StockReservationSettled, StockReserved
from storefront.inventory.holds import ReservationStatus, ensure_pending, hold_expiry, is_live
from storefront.pricing.configuration import ProductConfiguration
from storefront.utils.timestamps import utcnow

logger = structlog.get_logger(__name__)


@storefront.aggregate
class StockReservation:
    order_id = Identifier(required=True)
    product_id = Integer(required=True)
    quantity = Integer(required=True, min_value=1)
    status = String(choices=ReservationStatus, default=ReservationStatus.PENDING.value)
    expires_at = DateTime(required=True)
    created_at = DateTime()
    settled_at = DateTime()

    @classmethod
    def hold(cls, order_id, product_id, quantity, backordered=0):
        now = utcnow()
        reservation = cls(
            order_id=order_id,
            product_id=product_id,
            quantity=quantity,
            status=ReservationStatus.PENDING.value,
            expires_at=hold_expiry(now),
            created_at=now,
        )
        reservation.raise_(
            StockReserved(
                reservation_id=str(reservation.id),
                order_id=str(order_id),
                product_id=product_id,
                quantity=quantity,
                backordered=backordered,
                expires_at=reservation.expires_at,
            )
        )
        return reservation

    def _settle(self, status: ReservationStatus, action: str):
        ensure_pending(self, action)
        self.status = status.value
        self.settled_at = utcnow()
        self.raise_(
            StockReservationSettled(
                reservation_id=str(self.id),
                order_id=str(self.order_id),
                product_id=self.product_id,
                quantity=self.quantity,
                status=self.status,
                settled_at=self.settled_at,
            )
        )

    def confirm(self):
        self._settle(ReservationStatus.CONFIRMED, "confirm")

    def cancel(self):
        self._settle(ReservationStatus.CANCELLED, "cancel")

    def expire(self):
        self._settle(ReservationStatus.EXPIRED, "expire")


@storefront.repository(part_of=StockReservation)
class StockReservationRepository:
    def pending_for_order(self, order_id) -> list[StockReservation]:
        return self._dao.query.filter(order_id=order_id, status=ReservationStatus.PENDING.value).all().items

    def pending_for_product(self, product_id) -> list[StockReservation]:
        return self._dao.query.filter(product_id=product_id, status=ReservationStatus.PENDING.value).all().items

    def all_pending(self) -> list[StockReservation]:
        return self._dao.query.filter(status=ReservationStatus.PENDING.value).all().items


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------
def held_quantity(product_id, as_of=None) -> int:
    """Units of a product tied up in live holds."""
    repo = current_domain.repository_for(StockReservation)
    return sum(r.quantity for r in repo.pending_for_product(product_id) if is_live(r, as_of))


def free_product_stock(product, as_of=None) -> int:
    """Raw ``stock - held``; may be negative for backordered products."""
    return (product.stock or 0) - held_quantity(product.id, as_of)


def reserve_stock(order_id, product_id, quantity) -> StockReservation:
    """Hold ``quantity`` units of a product for an order.

    Rejected with ``InsufficientStockError`` when demand exceeds free stock,
    unless the product takes backorders.
    """
    product = reader.get_product(product_id)
    free = free_product_stock(product)

    backordered = 0
    if quantity > free:
        if not product.allows_backorders:
            raise InsufficientStockError(available=max(0, free), requested=quantity, subject=product.name)
        backordered = quantity - max(0, free)

    reservation = StockReservation.hold(order_id, product.id, quantity, backordered=backordered)
    product.mark_reserved(reservation.created_at)
    current_domain.repository_for(Product).add(product)
    current_domain.repository_for(StockReservation).add(reservation)

    logger.info(
        "Stock reserved",
        order_id=str(order_id),
        product_id=product.id,
        quantity=quantity,
        backordered=backordered,
    )
    return reservation


def confirm_reservation(order_id) -> int:
    """Deduct real stock for every pending hold of an order and mark them confirmed."""
    repo = current_domain.repository_for(StockReservation)
    pending = repo.pending_for_order(order_id)
    if not pending:
        return 0

    demand = defaultdict(int)
    for reservation in pending:
        demand[reservation.product_id] += reservation.quantity

    product_repo = current_domain.repository_for(Product)
    for product_id, quantity in demand.items():
        product = product_repo.get(product_id)
        product.deduct_stock(quantity)
        product_repo.add(product)

    for reservation in pending:
        reservation.confirm()
        repo.add(reservation)

    logger.info("Stock reservations confirmed", order_id=str(order_id), count=len(pending))
    return len(pending)


def cancel_reservation(order_id) -> int:
    """Mark an order's pending holds cancelled. Stock was never deducted."""
    repo = current_domain.repository_for(StockReservation)
    pending = repo.pending_for_order(order_id)
    for reservation in pending:
        reservation.cancel()
        repo.add(reservation)

    if pending:
        logger.info("Stock reservations cancelled", order_id=str(order_id), count=len(pending))
    return len(pending)


def get_available_stock(product_id, config=None) -> int:
    """The single read path used before admitting a quantity into a cart or order.

    Delegates to the variation ledger when the product tracks variation stock
    and a configuration with selections is supplied. Never negative: a
    backordered product with no free stock reports 0.
    """
    product = reader.get_product(product_id)

    if config is not None:
        configuration = ProductConfiguration.from_raw(config)
        if configuration.has_variation_selections() and reader.tracked_variations_for(product.id):
            return ledger.check_availability(product.id, configuration).available_quantity

    return max(0, free_product_stock(product))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@storefront.command(part_of="StockReservation")
class ReserveStock:
    order_id = Identifier(required=True)
    product_id = Integer(required=True)
    quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="StockReservation")
class ConfirmStockReservations:
    order_id = Identifier(required=True)


@storefront.command(part_of="StockReservation")
class CancelStockReservations:
    order_id = Identifier(required=True)


@storefront.command(part_of="StockReservation")
class AdjustProductStock:
    """Admin stock correction (positive or negative delta)."""

    product_id = Integer(required=True)
    delta = Integer(required=True)


@storefront.command_handler(part_of=StockReservation)
class StockReservationHandler:
    @handle(ReserveStock)
    def reserve_stock(self, command):
        reservation = reserve_stock(command.order_id, command.product_id, command.quantity)
        return str(reservation.id)

    @handle(ConfirmStockReservations)
    def confirm_reservations(self, command):
        return confirm_reservation(command.order_id)

    @handle(CancelStockReservations)
    def cancel_reservations(self, command):
        return cancel_reservation(command.order_id)

    @handle(AdjustProductStock)
    def adjust_product_stock(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.adjust_stock(command.delta)
        repo.add(product)
        logger.info("Product stock adjusted", product_id=product.id, delta=command.delta, stock=product.stock)
        return product.stock
