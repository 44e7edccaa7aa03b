"""Shared reservation status vocabulary and expiry arithmetic."""

from datetime import timedelta
from enum import Enum

from protean.exceptions import ValidationError

from storefront import config
from storefront.utils.timestamps import is_past, utcnow


class ReservationStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


def hold_expiry(now=None):
    """When a hold created ``now`` stops counting as live."""
    return (now or utcnow()) + timedelta(minutes=config.reservation_ttl_minutes())


def ensure_pending(reservation, action):
    if reservation.status != ReservationStatus.PENDING.value:
        raise ValidationError({"status": [f"Cannot {action} a reservation in {reservation.status} state"]})


def is_live(reservation, as_of=None) -> bool:
    """Pending and not yet past its expiry."""
    return reservation.status == ReservationStatus.PENDING.value and not is_past(reservation.expires_at, as_of)
