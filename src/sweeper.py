"""Periodic expiry sweeper for the storefront.

Every ``SWEEP_INTERVAL_SECONDS`` it expires stock holds past their TTL
(returning option counters to the pool) and deletes expired guest carts.

Usage:
    python src/sweeper.py          # Run forever
    python src/sweeper.py --once   # Run a single sweep and exit
"""

import argparse
import time

import structlog

from storefront import config
from storefront.domain import storefront

logger = structlog.get_logger(__name__)


def sweep_once() -> dict:
    """Run one expiry pass inside the storefront domain context."""
    from storefront.cart.expiry import CleanupExpiredCarts
    from storefront.inventory.expiry import ExpireStaleReservations

    with storefront.domain_context():
        holds = storefront.process(ExpireStaleReservations(), asynchronous=False)
        carts = storefront.process(CleanupExpiredCarts(), asynchronous=False)
    return {**holds, "guest_carts": carts}


def run(interval: int):
    logger.info("Sweeper started", interval_seconds=interval)
    while True:
        result = sweep_once()
        logger.info("Sweep complete", **result)
        time.sleep(interval)


def main():
    parser = argparse.ArgumentParser(description="Storefront expiry sweeper")
    parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Seconds between sweeps (default: SWEEP_INTERVAL_SECONDS or 120)",
    )
    args = parser.parse_args()

    storefront.init()
    if args.once:
        logger.info("Sweep complete", **sweep_once())
        return

    run(args.interval or config.sweep_interval_seconds())


if __name__ == "__main__":
    main()
