"""Payment provider selection.

Adapters are registered by name; ``PAYMENT_GATEWAY`` picks one the first
time ``get_gateway()`` is called in a process. Only the in-process fake ships
with the storefront, and it stays the default until a real provider adapter
is registered.
"""

from collections.abc import Callable

from storefront import config
from storefront.gateway.fake_adapter import FakeGateway
from storefront.gateway.port import PaymentGateway

_ADAPTERS: dict[str, Callable[[], PaymentGateway]] = {"fake": FakeGateway}
_active: PaymentGateway | None = None


def register_adapter(name: str, factory: Callable[[], PaymentGateway]) -> None:
    _ADAPTERS[name.lower()] = factory


def get_gateway() -> PaymentGateway:
    global _active
    if _active is None:
        name = config.payment_gateway()
        if name not in _ADAPTERS:
            raise ValueError(f"Unknown payment gateway {name!r}; registered: {sorted(_ADAPTERS)}")
        _active = _ADAPTERS[name]()
    return _active


def set_gateway(gateway: PaymentGateway) -> None:
    """Pin a specific adapter instance for the rest of the process."""
    global _active
    _active = gateway


def reset_gateway() -> None:
    """Forget the active adapter so the next call builds a fresh one."""
    global _active
    _active = None
