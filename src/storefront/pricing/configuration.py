"""Product configuration: the canonical, comparable form of a shopper's selections.

Raw configurations arrive from carts, API payloads and stored JSON with
inconsistent key types (``"3"`` vs ``3``), legacy overlapping fields and
unknown extras. ``ProductConfiguration.from_raw`` resolves all of that once;
every other component works with the resulting value object.

Wire shape (camelCase, as stored in cart lines)::

    {
        "colorId": 4,
        "modelVariationId": 12,
        "variations": {"7": "31", "8": true},
        "textValues": {"9": "2024"},
        "addons": [{"addonId": 2, "optionId": 5}, {"addonId": 3}],
        "bundleItems": {
            "selectedOptional": [14, "15"],
            "configurations": {"13": {"7": 31}},
        },
    }

Legacy ``dropdownSelections`` entries are folded into ``variations``
(explicit ``variations`` entries win).

Rules: identifiers are coerced to ``int`` and any key/value pair that cannot be
parsed is dropped; boolean variation values pass through unchanged; unknown
top-level fields are dropped; empty sections are omitted.

A ``variations`` value that parses as an integer is an option id. Free text
belongs in ``textValues``, whose values are kept as strings even when they
look numeric (an engraving of "2024" stays "2024"). Non-numeric strings found
in ``variations`` are still accepted as text.
"""

import json
from dataclasses import dataclass, field
from typing import Any

VariationValue = int | bool | str


def _to_int(value: Any) -> int | None:
    """Coerce an identifier to int, or return None when it is not one."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _variation_value(value: Any) -> VariationValue | None:
    """Numeric values become option ids; booleans and non-numeric text are kept."""
    if isinstance(value, bool):
        return value
    as_int = _to_int(value)
    if as_int is not None:
        return as_int
    if isinstance(value, str):
        return value
    return None


def _variation_map(raw: Any) -> dict[int, VariationValue]:
    if not isinstance(raw, dict):
        return {}
    result = {}
    for key, value in raw.items():
        variation_id = _to_int(key)
        normalized = _variation_value(value)
        if variation_id is None or normalized is None:
            continue
        result[variation_id] = normalized
    return result


def _text_map(raw: Any) -> dict[int, str]:
    if not isinstance(raw, dict):
        return {}
    result = {}
    for key, value in raw.items():
        variation_id = _to_int(key)
        if variation_id is None or isinstance(value, bool) or not isinstance(value, str | int | float):
            continue
        text = value if isinstance(value, str) else str(value)
        if text.strip():
            result[variation_id] = text
    return result


def _id_map(raw: Any) -> dict[int, int]:
    if not isinstance(raw, dict):
        return {}
    result = {}
    for key, value in raw.items():
        variation_id, option_id = _to_int(key), _to_int(value)
        if variation_id is None or option_id is None:
            continue
        result[variation_id] = option_id
    return result


@dataclass(frozen=True)
class AddonSelection:
    addon_id: int
    option_id: int | None = None

    def to_dict(self) -> dict:
        data = {"addonId": self.addon_id}
        if self.option_id is not None:
            data["optionId"] = self.option_id
        return data


@dataclass(frozen=True)
class BundleSelection:
    """Sub-selections for a bundle product.

    ``configurations`` maps a bundle item id to that member product's
    variation selections.
    """

    selected_optional: tuple[int, ...] = ()
    configurations: dict[int, dict[int, VariationValue]] = field(default_factory=dict)

    def configuration_for(self, bundle_item_id: int) -> "ProductConfiguration":
        return ProductConfiguration(variations=dict(self.configurations.get(bundle_item_id, {})))

    def is_empty(self) -> bool:
        return not self.selected_optional and not self.configurations

    def to_dict(self) -> dict:
        data: dict[str, Any] = {}
        if self.selected_optional:
            data["selectedOptional"] = list(self.selected_optional)
        if self.configurations:
            data["configurations"] = {
                item_id: dict(sorted(selections.items())) for item_id, selections in sorted(self.configurations.items())
            }
        return data


@dataclass(frozen=True)
class ProductConfiguration:
    color_id: int | None = None
    model_variation_id: int | None = None
    variations: dict[int, VariationValue] = field(default_factory=dict)
    text_values: dict[int, str] = field(default_factory=dict)
    addons: tuple[AddonSelection, ...] = ()
    bundle_items: BundleSelection | None = None

    # -------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------
    @classmethod
    def from_raw(cls, raw: Any) -> "ProductConfiguration":
        """Build a configuration from any raw mapping, JSON string or existing instance."""
        if isinstance(raw, ProductConfiguration):
            return raw
        if isinstance(raw, str):
            raw = json.loads(raw) if raw.strip() else {}
        if not isinstance(raw, dict):
            return cls()

        addons = {}
        for entry in raw.get("addons") or []:
            if not isinstance(entry, dict):
                continue
            addon_id = _to_int(entry.get("addonId"))
            if addon_id is None:
                continue
            addons[addon_id] = AddonSelection(addon_id=addon_id, option_id=_to_int(entry.get("optionId")))

        bundle_items = None
        raw_bundle = raw.get("bundleItems")
        if isinstance(raw_bundle, dict):
            selected = {_to_int(item_id) for item_id in raw_bundle.get("selectedOptional") or []}
            selected.discard(None)
            configurations = {}
            raw_configs = raw_bundle.get("configurations")
            if isinstance(raw_configs, dict):
                for item_id, selections in raw_configs.items():
                    bundle_item_id = _to_int(item_id)
                    if bundle_item_id is None:
                        continue
                    normalized = _variation_map(selections)
                    if normalized:
                        configurations[bundle_item_id] = normalized
            bundle_items = BundleSelection(selected_optional=tuple(sorted(selected)), configurations=configurations)
            if bundle_items.is_empty():
                bundle_items = None

        return cls(
            color_id=_to_int(raw.get("colorId")),
            model_variation_id=_to_int(raw.get("modelVariationId")),
            variations={**_id_map(raw.get("dropdownSelections")), **_variation_map(raw.get("variations"))},
            text_values=_text_map(raw.get("textValues")),
            addons=tuple(addons[addon_id] for addon_id in sorted(addons)),
            bundle_items=bundle_items,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def has_variation_selections(self) -> bool:
        return bool(self.variations or self.model_variation_id is not None)

    def selection_for(self, variation_id: int) -> VariationValue | None:
        if variation_id in self.text_values:
            return self.text_values[variation_id]
        return self.variations.get(variation_id)

    def selected_optional(self) -> tuple[int, ...]:
        return self.bundle_items.selected_optional if self.bundle_items else ()

    def without_optional(self, bundle_item_ids) -> "ProductConfiguration":
        """A copy with the given optional bundle items deselected."""
        if not self.bundle_items:
            return self
        dropped = set(bundle_item_ids)
        remaining = tuple(item_id for item_id in self.bundle_items.selected_optional if item_id not in dropped)
        configurations = {
            item_id: selections
            for item_id, selections in self.bundle_items.configurations.items()
            if item_id not in dropped
        }
        bundle_items = BundleSelection(selected_optional=remaining, configurations=configurations)
        return ProductConfiguration(
            color_id=self.color_id,
            model_variation_id=self.model_variation_id,
            variations=dict(self.variations),
            text_values=dict(self.text_values),
            addons=self.addons,
            bundle_items=None if bundle_items.is_empty() else bundle_items,
        )

    # -------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------
    def to_dict(self) -> dict:
        data: dict[str, Any] = {}
        if self.color_id is not None:
            data["colorId"] = self.color_id
        if self.model_variation_id is not None:
            data["modelVariationId"] = self.model_variation_id
        if self.variations:
            data["variations"] = dict(sorted(self.variations.items()))
        if self.text_values:
            data["textValues"] = dict(sorted(self.text_values.items()))
        if self.addons:
            data["addons"] = [addon.to_dict() for addon in self.addons]
        if self.bundle_items and not self.bundle_items.is_empty():
            data["bundleItems"] = self.bundle_items.to_dict()
        return data

    def canonical_json(self) -> str:
        """Byte-stable serialization; two configurations are equal iff these match."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))


def normalize(raw: Any) -> dict:
    """Canonical dict form of a configuration. ``normalize(normalize(c)) == normalize(c)``."""
    return ProductConfiguration.from_raw(raw).to_dict()


def canonical_json(raw: Any) -> str:
    return ProductConfiguration.from_raw(raw).canonical_json()


def same_configuration(left: Any, right: Any) -> bool:
    return canonical_json(left) == canonical_json(right)
