"""Storefront error taxonomy.

* Not found   -> ``protean.exceptions.ObjectNotFoundError``
* Validation  -> ``protean.exceptions.ValidationError`` (and the subclasses below)
* Conflict    -> ``ConflictError``

Everything else propagates and rolls back the active Unit of Work.
"""

from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds what can be held right now."""

    def __init__(self, available: int, requested: int, field: str = "quantity", subject: str | None = None):
        self.available = available
        self.requested = requested
        prefix = f"{subject}: " if subject else ""
        super().__init__({field: [f"{prefix}Insufficient stock: {available} available, {requested} requested"]})


class RequiredBundleItemUnavailable(InsufficientStockError):
    """A required member of a bundle cannot be supplied."""

    def __init__(self, item_name: str, available: int, requested: int):
        self.item_name = item_name
        super().__init__(available, requested, field="bundle_items", subject=item_name)


class ConflictError(InvalidOperationError):
    """The request clashes with existing state (duplicates, exhausted limits)."""


def not_found(entity: str, identifier) -> ObjectNotFoundError:
    """Build the not-found error used across the storefront."""
    return ObjectNotFoundError({"_entity": [f"{entity} with id `{identifier}` does not exist"]})
