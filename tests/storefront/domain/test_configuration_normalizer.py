"""Tests for configuration normalization and canonical comparison."""

import json

from storefront.pricing.configuration import (
    ProductConfiguration,
    canonical_json,
    normalize,
    same_configuration,
)


class TestNormalize:
    def test_string_and_int_ids_normalize_identically(self):
        assert normalize({"variations": {"7": "31"}}) == normalize({"variations": {7: 31}})

    def test_normalize_is_idempotent(self):
        raw = {
            "colorId": "4",
            "modelVariationId": 12,
            "variations": {"7": "31", "8": True, "9": "Engraved"},
            "addons": [{"addonId": "3", "optionId": "9"}, {"addonId": 2}],
            "bundleItems": {"selectedOptional": ["15", 14, 14], "configurations": {"13": {"7": "31"}}},
            "somethingElse": "ignored",
        }
        once = normalize(raw)
        assert normalize(once) == once

    def test_unparseable_ids_are_dropped(self):
        result = normalize({"variations": {"abc": 3, "5": 6}, "addons": [{"addonId": "x"}]})
        assert result == {"variations": {5: 6}}

    def test_boolean_and_text_values_pass_through(self):
        result = normalize({"variations": {"8": True, "9": "Hello"}})
        assert result["variations"] == {8: True, 9: "Hello"}

    def test_numeric_text_values_stay_strings(self):
        result = normalize({"variations": {"7": "31"}, "textValues": {"9": "2024", "10": "  "}})
        assert result == {"variations": {7: 31}, "textValues": {9: "2024"}}
        assert normalize(result) == result

    def test_text_values_change_the_canonical_form(self):
        assert canonical_json({"textValues": {"9": "2024"}}) != canonical_json({"variations": {"9": 2024}})

    def test_unknown_top_level_fields_are_dropped(self):
        assert normalize({"foo": 1, "bar": {"x": 2}}) == {}

    def test_dropdown_selections_are_folded_into_variations(self):
        result = normalize({"dropdownSelections": {"4": "10", "5": "11"}, "variations": {"5": 12}})
        assert result["variations"] == {4: 10, 5: 12}

    def test_addons_are_sorted_and_deduplicated(self):
        result = normalize({"addons": [{"addonId": 5}, {"addonId": "2", "optionId": 1}, {"addonId": 5}]})
        assert result["addons"] == [{"addonId": 2, "optionId": 1}, {"addonId": 5}]

    def test_selected_optional_is_sorted_and_deduplicated(self):
        result = normalize({"bundleItems": {"selectedOptional": ["15", 14, "14", "bad"]}})
        assert result["bundleItems"]["selectedOptional"] == [14, 15]

    def test_empty_bundle_section_is_omitted(self):
        assert normalize({"bundleItems": {"selectedOptional": [], "configurations": {}}}) == {}


class TestCanonicalJson:
    def test_canonical_json_is_compact_and_sorted(self):
        result = canonical_json({"variations": {"7": 31}, "colorId": 2})
        assert result == '{"colorId":2,"variations":{"7":31}}'

    def test_equal_configurations_compare_equal(self):
        assert same_configuration({"variations": {"7": "31"}}, json.dumps({"variations": {"7": 31}}))

    def test_different_selections_compare_unequal(self):
        assert not same_configuration({"variations": {"7": 31}}, {"variations": {"7": 32}})


class TestProductConfiguration:
    def test_from_raw_accepts_json_string(self):
        config = ProductConfiguration.from_raw('{"modelVariationId": "12"}')
        assert config.model_variation_id == 12
        assert config.has_variation_selections()

    def test_from_raw_returns_same_instance(self):
        config = ProductConfiguration(color_id=3)
        assert ProductConfiguration.from_raw(config) is config

    def test_empty_configuration_has_no_selections(self):
        config = ProductConfiguration.from_raw(None)
        assert not config.has_variation_selections()
        assert config.to_dict() == {}

    def test_without_optional_drops_items_and_their_configurations(self):
        config = ProductConfiguration.from_raw(
            {"bundleItems": {"selectedOptional": [14, 15], "configurations": {"14": {"7": 31}, "13": {"7": 30}}}}
        )
        trimmed = config.without_optional([14])
        assert trimmed.selected_optional() == (15,)
        assert 14 not in trimmed.bundle_items.configurations
        assert 13 in trimmed.bundle_items.configurations

    def test_bundle_member_configuration(self):
        config = ProductConfiguration.from_raw({"bundleItems": {"configurations": {"13": {"7": "31"}}}})
        assert config.bundle_items.configuration_for(13).selection_for(7) == 31
        assert config.bundle_items.configuration_for(99).to_dict() == {}
