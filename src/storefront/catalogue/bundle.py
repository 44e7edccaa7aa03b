"""BundleItem aggregate and bundle administration commands.

A bundle is a regular ``Product`` with ``is_bundle`` set; its members are
``BundleItem`` rows pointing at other products. Required members always ship
with the bundle; optional members ship only when the shopper selects them.
"""

import json
from enum import Enum

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.errors import ConflictError

logger = structlog.get_logger(__name__)


class BundleItemType(Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"


@storefront.aggregate
class BundleItem:
    id = Integer(identifier=True)
    bundle_product_id = Integer(required=True)
    product_id = Integer(required=True)
    quantity = Integer(default=1, min_value=1)
    item_type = String(choices=BundleItemType, default=BundleItemType.REQUIRED.value)
    is_configurable = Boolean(default=False)
    price_adjustment = Float(default=0.0)
    display_name = String(max_length=255)
    description = Text()
    sort_order = Integer(default=0)

    @property
    def is_required(self) -> bool:
        return self.item_type == BundleItemType.REQUIRED.value

    @property
    def label(self) -> str:
        return self.display_name or f"Item {self.id}"


@storefront.repository(part_of=BundleItem)
class BundleItemRepository:
    def for_bundle(self, bundle_product_id) -> list[BundleItem]:
        """Members of a bundle, required first, then by sort order."""
        items = self._dao.query.filter(bundle_product_id=bundle_product_id).all().items
        return sorted(items, key=lambda i: (0 if i.is_required else 1, i.sort_order or 0, i.id))

    def next_identity(self) -> int:
        items = self._dao.query.all().items
        return max((i.id for i in items), default=0) + 1


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@storefront.command(part_of="BundleItem")
class AddBundleItem:
    bundle_product_id = Integer(required=True)
    product_id = Integer(required=True)
    quantity = Integer(default=1, min_value=1)
    item_type = String(choices=BundleItemType, default=BundleItemType.REQUIRED.value)
    is_configurable = Boolean(default=False)
    price_adjustment = Float(default=0.0)
    display_name = String(max_length=255)
    description = Text()
    sort_order = Integer()  # Optional: defaults to the end of its group


@storefront.command(part_of="BundleItem")
class UpdateBundleItem:
    bundle_item_id = Integer(required=True)
    quantity = Integer(min_value=1)
    item_type = String(choices=BundleItemType)
    is_configurable = Boolean()
    price_adjustment = Float()
    display_name = String(max_length=255)
    description = Text()
    sort_order = Integer()


@storefront.command(part_of="BundleItem")
class RemoveBundleItem:
    bundle_item_id = Integer(required=True)


@storefront.command(part_of="BundleItem")
class ReorderBundleItems:
    bundle_product_id = Integer(required=True)
    item_ids = Text(required=True)  # JSON: ordered list of bundle item ids


@storefront.command_handler(part_of=BundleItem)
class BundleAdministrationHandler:
    @handle(AddBundleItem)
    def add_bundle_item(self, command):
        if command.bundle_product_id == command.product_id:
            raise ValidationError({"product_id": ["A bundle cannot contain itself"]})

        product_repo = current_domain.repository_for(Product)
        bundle = product_repo.get(command.bundle_product_id)
        product_repo.get(command.product_id)

        repo = current_domain.repository_for(BundleItem)
        existing = repo.for_bundle(command.bundle_product_id)
        if any(i.product_id == command.product_id for i in existing):
            raise ConflictError("Item already in bundle")

        sort_order = command.sort_order
        if sort_order is None:
            same_type = [i.sort_order or 0 for i in existing if i.item_type == command.item_type]
            sort_order = max(same_type, default=-1) + 1

        item = BundleItem(
            id=repo.next_identity(),
            bundle_product_id=command.bundle_product_id,
            product_id=command.product_id,
            quantity=command.quantity,
            item_type=command.item_type,
            is_configurable=command.is_configurable,
            price_adjustment=command.price_adjustment,
            display_name=command.display_name,
            description=command.description,
            sort_order=sort_order,
        )
        repo.add(item)

        if not bundle.is_bundle:
            bundle.is_bundle = True
            product_repo.add(bundle)

        logger.info(
            "Bundle item added",
            bundle_product_id=command.bundle_product_id,
            bundle_item_id=item.id,
            product_id=command.product_id,
        )
        return item.id

    @handle(UpdateBundleItem)
    def update_bundle_item(self, command):
        repo = current_domain.repository_for(BundleItem)
        item = repo.get(command.bundle_item_id)

        for field_name in (
            "quantity",
            "item_type",
            "is_configurable",
            "price_adjustment",
            "display_name",
            "description",
            "sort_order",
        ):
            value = getattr(command, field_name)
            if value is not None:
                setattr(item, field_name, value)
        repo.add(item)

    @handle(RemoveBundleItem)
    def remove_bundle_item(self, command):
        repo = current_domain.repository_for(BundleItem)
        item = repo.get(command.bundle_item_id)
        repo._dao.delete(item)
        logger.info("Bundle item removed", bundle_item_id=command.bundle_item_id)

    @handle(ReorderBundleItems)
    def reorder_bundle_items(self, command):
        ordered_ids = [int(i) for i in json.loads(command.item_ids)]
        repo = current_domain.repository_for(BundleItem)
        items = {i.id: i for i in repo.for_bundle(command.bundle_product_id)}

        unknown = [i for i in ordered_ids if i not in items]
        if unknown:
            raise ValidationError({"item_ids": [f"Items {unknown} do not belong to bundle {command.bundle_product_id}"]})

        for position, item_id in enumerate(ordered_ids):
            item = items[item_id]
            item.sort_order = position
            repo.add(item)

