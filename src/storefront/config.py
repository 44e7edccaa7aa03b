"""Storefront tunables, read from the environment.

Values are resolved at call time so tests can monkeypatch the environment.
"""

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def cart_ttl_days() -> int:
    """Days an untouched cart stays alive."""
    return _int_env("CART_TTL_DAYS", 7)


def reservation_ttl_minutes() -> int:
    """Minutes a pending stock hold lives before the sweeper may expire it."""
    return _int_env("RESERVATION_TTL_MINUTES", 30)


def sweep_interval_seconds() -> int:
    """Interval between expiry sweeps.

    A stale pending variation hold keeps reducing availability for at most
    ``reservation_ttl_minutes() * 60 + sweep_interval_seconds()`` seconds.
    """
    return _int_env("SWEEP_INTERVAL_SECONDS", 120)


def min_cart_quantity() -> int:
    return _int_env("MIN_CART_QUANTITY", 1)


def max_cart_quantity() -> int:
    return _int_env("MAX_CART_QUANTITY", 100)


def default_currency() -> str:
    return os.getenv("DEFAULT_CURRENCY", "USD")


def default_region() -> str:
    return os.getenv("DEFAULT_REGION", "us").lower()


def payment_gateway() -> str:
    """Name of the registered payment adapter to use."""
    return os.getenv("PAYMENT_GATEWAY", "fake").strip().lower()
