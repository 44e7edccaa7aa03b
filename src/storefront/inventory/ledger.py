"""Variation stock ledger — availability and holds per variation option.

Only variations flagged ``tracks_stock`` take part. A configuration is only
as available as its scarcest selected option, so availability is the minimum
free quantity across the selected tracked options, never a sum.

Holds bump ``VariationOption.reserved_quantity`` on the owning
``ProductVariation`` and insert a ``VariationStockReservation`` row in the
same Unit of Work; confirm and release unwind both together.
"""

from collections import defaultdict
from dataclasses import dataclass, field

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.catalogue import reader
from storefront.catalogue.variation import ProductVariation, VariationType
from storefront.domain import storefront
from storefront.inventory.events import VariationReservationSettled, VariationStockReserved
from storefront.inventory.holds import ReservationStatus, ensure_pending, hold_expiry
from storefront.pricing.configuration import ProductConfiguration
from storefront.utils.timestamps import utcnow

logger = structlog.get_logger(__name__)

_SETTLE_ACTIONS = {
    ReservationStatus.CONFIRMED: "confirm",
    ReservationStatus.CANCELLED: "release",
    ReservationStatus.EXPIRED: "expire",
}


@dataclass(frozen=True)
class OptionStock:
    variation_id: int
    variation_name: str
    option_id: int
    option_name: str
    available: int


@dataclass(frozen=True)
class StockCheckResult:
    available: bool
    available_quantity: int
    breakdown: tuple = field(default_factory=tuple)

    @classmethod
    def of(cls, quantity, breakdown=()):
        quantity = max(0, quantity)
        return cls(available=quantity > 0, available_quantity=quantity, breakdown=tuple(breakdown))


@storefront.aggregate
class VariationStockReservation:
    order_id = Identifier(required=True)
    product_id = Integer()
    variation_id = Integer(required=True)
    variation_option_id = Integer(required=True)
    quantity = Integer(required=True, min_value=1)
    status = String(choices=ReservationStatus, default=ReservationStatus.PENDING.value)
    expires_at = DateTime(required=True)
    created_at = DateTime()
    settled_at = DateTime()

    @classmethod
    def hold(cls, order_id, variation, option_id, quantity):
        now = utcnow()
        reservation = cls(
            order_id=order_id,
            product_id=variation.product_id,
            variation_id=variation.id,
            variation_option_id=option_id,
            quantity=quantity,
            status=ReservationStatus.PENDING.value,
            expires_at=hold_expiry(now),
            created_at=now,
        )
        reservation.raise_(
            VariationStockReserved(
                reservation_id=str(reservation.id),
                order_id=str(order_id),
                variation_id=variation.id,
                variation_option_id=option_id,
                quantity=quantity,
                expires_at=reservation.expires_at,
            )
        )
        return reservation

    def settle(self, status: ReservationStatus):
        ensure_pending(self, _SETTLE_ACTIONS[status])
        self.status = status.value
        self.settled_at = utcnow()
        self.raise_(
            VariationReservationSettled(
                reservation_id=str(self.id),
                order_id=str(self.order_id),
                variation_id=self.variation_id,
                variation_option_id=self.variation_option_id,
                quantity=self.quantity,
                status=self.status,
                settled_at=self.settled_at,
            )
        )


@storefront.repository(part_of=VariationStockReservation)
class VariationStockReservationRepository:
    def pending_for_order(self, order_id) -> list[VariationStockReservation]:
        return self._dao.query.filter(order_id=order_id, status=ReservationStatus.PENDING.value).all().items

    def all_pending(self) -> list[VariationStockReservation]:
        return self._dao.query.filter(status=ReservationStatus.PENDING.value).all().items


# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------
def _selected_value(variation, config: ProductConfiguration):
    value = config.selection_for(variation.id)
    if value is None and variation.variation_type == VariationType.MODEL.value:
        return config.model_variation_id
    return value


def check_availability(product_id, config) -> StockCheckResult:
    """How many units of ``product_id`` configured as ``config`` are free right now."""
    product = reader.get_product(product_id)
    config = ProductConfiguration.from_raw(config)
    tracked = reader.tracked_variations_for(product.id)

    if not tracked or not config.has_variation_selections():
        return StockCheckResult.of(product.stock or 0)

    breakdown = []
    for variation in tracked:
        option = variation.resolve_option(_selected_value(variation, config))
        if option is None:
            continue
        breakdown.append(
            OptionStock(
                variation_id=variation.id,
                variation_name=variation.name,
                option_id=option.id,
                option_name=option.option_name,
                available=option.free,
            )
        )

    if not breakdown:
        return StockCheckResult.of(product.stock or 0)

    return StockCheckResult.of(min(entry.available for entry in breakdown), breakdown)


def tracked_selections(product_id, config) -> list[tuple[int, int]]:
    """(variation_id, option_id) pairs a configuration draws stock from."""
    config = ProductConfiguration.from_raw(config)
    pairs = []
    for variation in reader.tracked_variations_for(product_id):
        option = variation.resolve_option(_selected_value(variation, config))
        if option is not None:
            pairs.append((variation.id, option.id))
    return pairs


# ---------------------------------------------------------------------------
# Holds
# ---------------------------------------------------------------------------
def reserve_variation_stock(variation_id, option_id, quantity, order_id) -> VariationStockReservation:
    """Hold ``quantity`` units of a variation option for an order.

    Raises ``InsufficientStockError`` when ``quantity`` exceeds the option's
    free stock, and ``ValidationError`` when the option is not one of the
    variation's; nothing is written in either case.
    """
    return reserve_variation_options(order_id, variation_id, {option_id: quantity})[0]


def reserve_variation_options(order_id, variation_id, quantities: dict) -> list[VariationStockReservation]:
    """Hold several options of one variation in a single read-check-write of that variation.

    Either every option fits and all holds are written, or the first option
    that does not fit raises and nothing is written.
    """
    variation_repo = current_domain.repository_for(ProductVariation)
    variation = variation_repo.get(variation_id)

    reservations = []
    for option_id, quantity in quantities.items():
        variation.hold(option_id, quantity)
        reservations.append(VariationStockReservation.hold(order_id, variation, option_id, quantity))

    variation_repo.add(variation)
    reservation_repo = current_domain.repository_for(VariationStockReservation)
    for reservation in reservations:
        reservation_repo.add(reservation)
        logger.info(
            "Variation stock reserved",
            order_id=str(order_id),
            variation_id=variation.id,
            variation_option_id=reservation.variation_option_id,
            quantity=reservation.quantity,
        )
    return reservations


def _settle(rows, status: ReservationStatus) -> int:
    """Unwind holds on their variations, then flip the rows to ``status``."""
    if not rows:
        return 0

    by_variation = defaultdict(list)
    for row in rows:
        by_variation[row.variation_id].append(row)

    variation_repo = current_domain.repository_for(ProductVariation)
    for variation_id, variation_rows in by_variation.items():
        variation = variation_repo.get(variation_id)
        for row in variation_rows:
            if status == ReservationStatus.CONFIRMED:
                variation.confirm(row.variation_option_id, row.quantity)
            else:
                variation.release(row.variation_option_id, row.quantity)
        variation_repo.add(variation)

    reservation_repo = current_domain.repository_for(VariationStockReservation)
    for row in rows:
        row.settle(status)
        reservation_repo.add(row)
    return len(rows)


def confirm_variation_reservations(order_id) -> int:
    """Turn every pending option hold of an order into a real stock decrement."""
    rows = current_domain.repository_for(VariationStockReservation).pending_for_order(order_id)
    count = _settle(rows, ReservationStatus.CONFIRMED)
    if count:
        logger.info("Variation reservations confirmed", order_id=str(order_id), count=count)
    return count


def release_variation_stock(order_id, option_id=None) -> int:
    """Return an order's pending option holds to the pool, optionally for one option only."""
    rows = current_domain.repository_for(VariationStockReservation).pending_for_order(order_id)
    if option_id is not None:
        rows = [r for r in rows if r.variation_option_id == option_id]
    count = _settle(rows, ReservationStatus.CANCELLED)
    if count:
        logger.info("Variation reservations released", order_id=str(order_id), count=count, option_id=option_id)
    return count


def expire_variation_reservations(rows) -> int:
    return _settle(rows, ReservationStatus.EXPIRED)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@storefront.command(part_of="VariationStockReservation")
class ReserveVariationStock:
    order_id = Identifier(required=True)
    variation_option_id = Integer(required=True)
    quantity = Integer(required=True, min_value=1)
    variation_id = Integer(required=True)


@storefront.command(part_of="VariationStockReservation")
class ConfirmVariationReservations:
    order_id = Identifier(required=True)


@storefront.command(part_of="VariationStockReservation")
class ReleaseVariationStock:
    order_id = Identifier(required=True)
    variation_option_id = Integer()  # Optional: release only this option's holds


@storefront.command(part_of="VariationStockReservation")
class AdjustVariationStock:
    """Admin stock correction for one option (positive or negative delta)."""

    variation_id = Integer(required=True)
    variation_option_id = Integer(required=True)
    delta = Integer(required=True)


@storefront.command_handler(part_of=VariationStockReservation)
class VariationStockHandler:
    @handle(ReserveVariationStock)
    def reserve(self, command):
        reservation = reserve_variation_stock(
            command.variation_id,
            command.variation_option_id,
            command.quantity,
            command.order_id,
        )
        return str(reservation.id)

    @handle(ConfirmVariationReservations)
    def confirm(self, command):
        return confirm_variation_reservations(command.order_id)

    @handle(ReleaseVariationStock)
    def release(self, command):
        return release_variation_stock(command.order_id, option_id=command.variation_option_id)

    @handle(AdjustVariationStock)
    def adjust(self, command):
        repo = current_domain.repository_for(ProductVariation)
        variation = repo.get(command.variation_id)
        stock = variation.adjust_stock(command.variation_option_id, command.delta)
        repo.add(variation)
        logger.info(
            "Variation stock adjusted",
            variation_id=variation.id,
            variation_option_id=command.variation_option_id,
            delta=command.delta,
            stock=stock,
        )
        return stock
