"""Configurable fake payment provider for development and testing.

No external calls are made. Tests flip ``should_succeed`` to drive declines,
set ``amount_override`` to simulate a provider disagreeing on the amount, or
set ``raise_on_capture`` to simulate the provider being unreachable.
"""

from uuid import uuid4

from storefront.gateway.port import CaptureResult, CaptureStatus, PaymentGateway, PaymentSession


class FakeGateway(PaymentGateway):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Payment declined"
        self.amount_override: float | None = None
        self.raise_on_capture: Exception | None = None
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Payment declined",
        amount_override: float | None = None,
        raise_on_capture: Exception | None = None,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.amount_override = amount_override
        self.raise_on_capture = raise_on_capture

    def create_payment(self, order_id: str, amount: float, currency: str) -> PaymentSession:
        self.calls.append({"method": "create_payment", "order_id": order_id, "amount": amount, "currency": currency})
        payment_id = f"fake_pay_{uuid4().hex[:12]}"
        return PaymentSession(
            payment_id=payment_id,
            approval_url=f"https://payments.example.test/approve/{payment_id}",
            amount=self.amount_override if self.amount_override is not None else amount,
            currency=currency,
        )

    def capture_payment(self, payment_id: str) -> CaptureResult:
        self.calls.append({"method": "capture_payment", "payment_id": payment_id})
        if self.raise_on_capture is not None:
            raise self.raise_on_capture

        if self.should_succeed:
            return CaptureResult(
                status=CaptureStatus.COMPLETED.value,
                external_transaction_id=f"fake_txn_{uuid4().hex[:12]}",
            )
        return CaptureResult(status=CaptureStatus.DECLINED.value, failure_reason=self.failure_reason)
