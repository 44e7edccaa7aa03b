"""Tests for ProductVariation option lookup and the per-option stock counters."""

import pytest
from protean.exceptions import ValidationError

from storefront.catalogue.variation import ProductVariation, VariationOption, VariationType
from storefront.errors import InsufficientStockError


def _make_variation(variation_type=VariationType.DROPDOWN.value):
    return ProductVariation(
        id=7,
        product_id=1,
        name="Mount",
        variation_type=variation_type,
        tracks_stock=True,
        options=[
            VariationOption(id=31, option_name="Desk", price_adjustment=0.0, stock_quantity=5),
            VariationOption(id=32, option_name="Wall", price_adjustment=25.0, stock_quantity=1),
        ],
    )


def _make_boolean_variation():
    return ProductVariation(
        id=8,
        product_id=1,
        name="Include cable?",
        variation_type=VariationType.BOOLEAN.value,
        options=[
            VariationOption(id=40, option_name="Yes", price_adjustment=15.0),
            VariationOption(id=41, option_name="No"),
        ],
    )


class TestResolveOption:
    def test_resolves_by_id(self):
        assert _make_variation().resolve_option(31).option_name == "Desk"

    def test_resolves_string_id(self):
        assert _make_variation().resolve_option("32").option_name == "Wall"

    def test_unknown_id_resolves_to_none(self):
        assert _make_variation().resolve_option(99) is None

    @pytest.mark.parametrize("value,expected", [(True, "Yes"), ("1", "Yes"), (False, "No"), ("false", "No")])
    def test_boolean_variation_maps_to_yes_no(self, value, expected):
        assert _make_boolean_variation().resolve_option(value).option_name == expected


class TestCounters:
    def test_hold_increments_reserved(self):
        variation = _make_variation()
        variation.hold(31, 3)
        option = variation.option(31)
        assert option.reserved_quantity == 3
        assert option.free == 2

    def test_hold_beyond_free_is_rejected(self):
        variation = _make_variation()
        variation.hold(31, 4)
        with pytest.raises(InsufficientStockError) as exc:
            variation.hold(31, 2)
        assert exc.value.available == 1
        assert exc.value.requested == 2

    def test_confirm_decrements_both_counters(self):
        variation = _make_variation()
        variation.hold(31, 2)
        variation.confirm(31, 2)
        option = variation.option(31)
        assert option.stock_quantity == 3
        assert option.reserved_quantity == 0

    def test_release_returns_hold_to_pool(self):
        variation = _make_variation()
        variation.hold(32, 1)
        variation.release(32, 1)
        assert variation.option(32).free == 1

    def test_release_floors_at_zero(self):
        variation = _make_variation()
        variation.release(31, 5)
        assert variation.option(31).reserved_quantity == 0

    def test_unknown_option_is_rejected(self):
        with pytest.raises(ValidationError):
            _make_variation().hold(99, 1)
