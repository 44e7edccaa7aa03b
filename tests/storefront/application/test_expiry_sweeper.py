"""Tests for expiring stale holds and abandoned guest carts."""

from datetime import timedelta

import pytest
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.cart.expiry import CleanupExpiredCarts
from storefront.cart.identity import Guest, User
from storefront.cart.items import add_item
from storefront.catalogue.variation import ProductVariation
from storefront.inventory.expiry import ExpireStaleReservations
from storefront.inventory.holds import ReservationStatus
from storefront.inventory.ledger import VariationStockReservation, reserve_variation_stock
from storefront.inventory.reservation import StockReservation, get_available_stock, reserve_stock
from storefront.utils.timestamps import utcnow


def _later(minutes=31):
    return utcnow() + timedelta(minutes=minutes)


class TestExpireStaleReservations:
    def test_overdue_product_holds_are_expired(self, make_product):
        make_product(1, stock=5)
        reservation = reserve_stock("order-1", 1, 5)

        result = current_domain.process(ExpireStaleReservations(as_of=_later()), asynchronous=False)

        assert result == {"product_holds": 1, "variation_holds": 0}
        stored = current_domain.repository_for(StockReservation).get(reservation.id)
        assert stored.status == ReservationStatus.EXPIRED.value
        assert get_available_stock(1) == 5

    def test_fresh_holds_are_kept(self, make_product):
        make_product(1, stock=5)
        reserve_stock("order-1", 1, 2)
        result = current_domain.process(ExpireStaleReservations(as_of=utcnow()), asynchronous=False)
        assert result["product_holds"] == 0
        assert get_available_stock(1) == 3

    def test_overdue_variation_holds_return_to_pool(self, make_product, make_variation):
        make_product(1)
        make_variation(7, 1, [(31, "Small", 0.0, 5)], name="Size")
        reservation = reserve_variation_stock(7, 31, 4, "order-1")

        result = current_domain.process(ExpireStaleReservations(as_of=_later()), asynchronous=False)

        assert result["variation_holds"] == 1
        assert current_domain.repository_for(ProductVariation).get(7).option(31).reserved_quantity == 0
        stored = current_domain.repository_for(VariationStockReservation).get(reservation.id)
        assert stored.status == ReservationStatus.EXPIRED.value


class TestCleanupExpiredCarts:
    def test_expired_guest_carts_are_deleted(self, make_product):
        make_product(1)
        guest = add_item(Guest(session_id="sess-1"), 1, 1)
        user = add_item(User(user_id="user-1"), 1, 1)

        removed = current_domain.process(CleanupExpiredCarts(as_of=utcnow() + timedelta(days=8)), asynchronous=False)

        assert removed == 1
        carts = current_domain.repository_for(Cart)._dao.query.all().items
        assert [str(c.id) for c in carts] == [user.cart_id]
        assert guest.cart_id not in [str(c.id) for c in carts]

    def test_nothing_to_clean(self, make_product):
        make_product(1)
        add_item(Guest(session_id="sess-1"), 1, 1)
        assert current_domain.process(CleanupExpiredCarts(), asynchronous=False) == 0


class TestSweepOnce:
    def test_single_pass_reports_counts(self, make_product):
        from sweeper import sweep_once

        make_product(1)
        reserve_stock("order-1", 1, 1)
        assert sweep_once() == {"product_holds": 0, "variation_holds": 0, "guest_carts": 0}

    def test_run_sweeps_between_blocking_sleeps(self, make_product, monkeypatch):
        import sweeper

        sleeps = []

        def fake_sleep(seconds):
            sleeps.append(seconds)
            if len(sleeps) == 2:
                raise KeyboardInterrupt

        monkeypatch.setattr(sweeper.time, "sleep", fake_sleep)
        with pytest.raises(KeyboardInterrupt):
            sweeper.run(5)
        assert sleeps == [5, 5]
