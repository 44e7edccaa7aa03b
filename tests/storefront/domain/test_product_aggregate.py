"""Tests for Product stock, sale window and backorder rules."""

from datetime import timedelta

import pytest
from protean.exceptions import ValidationError

from storefront.catalogue.product import Product, backorders_enabled
from storefront.utils.timestamps import utcnow


def _make_product(**overrides):
    defaults = {"id": 1, "name": "Yoke", "regular_price": 200.0, "stock": 5}
    defaults.update(overrides)
    return Product(**defaults)


class TestBackorderPolicy:
    @pytest.mark.parametrize("setting", ["yes", "YES", "1", "true", " on "])
    def test_enabled_settings(self, setting):
        assert backorders_enabled(setting)

    @pytest.mark.parametrize("setting", [None, "", "no", "notify", "0"])
    def test_disabled_settings(self, setting):
        assert not backorders_enabled(setting)


class TestSaleWindow:
    def test_sale_price_without_window_is_live(self):
        product = _make_product(sale_price=150.0)
        assert product.is_on_sale()
        assert product.sale_discount() == 50.0

    def test_sale_outside_window_is_not_live(self):
        now = utcnow()
        product = _make_product(sale_price=150.0, sale_starts_at=now + timedelta(days=1))
        assert not product.is_on_sale(now)
        assert product.sale_discount(now) == 0.0
        assert product.savings(now) is None

    def test_savings_percentage(self):
        product = _make_product(sale_price=150.0)
        assert product.savings() == {"has_sale": True, "savings": 50.0, "percentage": 25}

    def test_sale_price_above_regular_is_rejected(self):
        with pytest.raises(ValidationError):
            _make_product(sale_price=250.0)


class TestStock:
    def test_deduct_stock(self):
        product = _make_product()
        product.deduct_stock(3)
        assert product.stock == 2

    def test_deduct_stock_floors_at_zero_without_backorders(self):
        product = _make_product(stock=2)
        product.deduct_stock(5)
        assert product.stock == 0

    def test_deduct_stock_goes_negative_with_backorders(self):
        product = _make_product(stock=2, backorders="yes")
        product.deduct_stock(5)
        assert product.stock == -3

    def test_adjust_stock_never_below_zero(self):
        product = _make_product(stock=2)
        product.adjust_stock(-10)
        assert product.stock == 0
