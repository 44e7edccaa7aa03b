"""Domain events for stock holds at product and variation-option level."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="StockReservation")
class StockReserved:
    """Units of a product were put on hold for an order."""

    __version__ = 1

    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    product_id = Integer(required=True)
    quantity = Integer(required=True)
    backordered = Integer(default=0)
    expires_at = DateTime(required=True)


@storefront.event(part_of="StockReservation")
class StockReservationSettled:
    """A product-level hold left the pending state (confirmed, cancelled or expired)."""

    __version__ = 1

    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    product_id = Integer(required=True)
    quantity = Integer(required=True)
    status = String(required=True)
    settled_at = DateTime(required=True)


@storefront.event(part_of="VariationStockReservation")
class VariationStockReserved:
    """Units of a variation option were put on hold for an order."""

    __version__ = 1

    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    variation_id = Integer(required=True)
    variation_option_id = Integer(required=True)
    quantity = Integer(required=True)
    expires_at = DateTime(required=True)


@storefront.event(part_of="VariationStockReservation")
class VariationReservationSettled:
    """An option-level hold left the pending state."""

    __version__ = 1

    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    variation_id = Integer(required=True)
    variation_option_id = Integer(required=True)
    quantity = Integer(required=True)
    status = String(required=True)
    settled_at = DateTime(required=True)
