"""Timezone helpers.

Providers differ in whether they hand back aware or naive datetimes; all
comparisons in the storefront go through ``as_utc`` so both compare cleanly.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def is_past(value: datetime | None, as_of: datetime | None = None) -> bool:
    """True when ``value`` is set and at or before ``as_of`` (default now)."""
    if value is None:
        return False
    return as_utc(value) <= as_utc(as_of or utcnow())
