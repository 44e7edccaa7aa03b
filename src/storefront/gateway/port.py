"""Payment capability port.

The checkout manager only ever asks a provider to open a payment for an
order and later to capture it. Anything the provider reports other than
``CaptureStatus.COMPLETED`` is treated as a failed payment.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class CaptureStatus(Enum):
    COMPLETED = "COMPLETED"
    DECLINED = "DECLINED"
    PENDING = "PENDING"


@dataclass(frozen=True)
class PaymentSession:
    """A payment opened with the provider, awaiting shopper approval."""

    payment_id: str
    approval_url: str | None = None
    amount: float | None = None
    currency: str | None = None


@dataclass(frozen=True)
class CaptureResult:
    status: str
    external_transaction_id: str | None = None
    failure_reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == CaptureStatus.COMPLETED.value


class PaymentGateway(ABC):
    @abstractmethod
    def create_payment(self, order_id: str, amount: float, currency: str) -> PaymentSession:
        """Open a payment for ``amount`` and return where the shopper approves it."""
        ...

    @abstractmethod
    def capture_payment(self, payment_id: str) -> CaptureResult:
        """Capture an approved payment. Transport failures raise."""
        ...
