"""Tests for the order status transitions and payment outcomes."""

import pytest
from protean.exceptions import ValidationError

from storefront.gateway.port import CaptureResult, CaptureStatus
from storefront.order.order import OrderStatus, PaymentOutcome, next_status


class TestNextStatus:
    def test_success_from_pending_goes_to_paid(self):
        assert next_status(OrderStatus.PENDING_PAYMENT, PaymentOutcome(succeeded=True)) == OrderStatus.PAID

    def test_failure_from_pending_goes_to_payment_failed(self):
        outcome = PaymentOutcome(succeeded=False, reason="Declined")
        assert next_status(OrderStatus.PENDING_PAYMENT, outcome) == OrderStatus.PAYMENT_FAILED

    @pytest.mark.parametrize("current", [OrderStatus.PAID, OrderStatus.CANCELLED, OrderStatus.PAYMENT_FAILED])
    def test_settled_orders_cannot_settle_again(self, current):
        with pytest.raises(ValidationError):
            next_status(current, PaymentOutcome(succeeded=True))


class TestPaymentOutcome:
    def test_from_completed_capture(self):
        result = CaptureResult(status=CaptureStatus.COMPLETED.value, external_transaction_id="txn-1")
        outcome = PaymentOutcome.from_capture(result)
        assert outcome.succeeded
        assert outcome.external_transaction_id == "txn-1"
        assert outcome.reason is None

    def test_any_other_status_is_a_failure(self):
        outcome = PaymentOutcome.from_capture(CaptureResult(status=CaptureStatus.PENDING.value))
        assert not outcome.succeeded
        assert "PENDING" in outcome.reason
