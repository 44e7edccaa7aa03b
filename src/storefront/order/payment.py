"""Payment and settlement of orders.

``settle_payment`` is the single place where a payment outcome changes stock:
success confirms every hold (the only path that decrements catalogue stock),
anything else releases them. How the outcome arrives (synchronous capture,
webhook, polling) does not matter to it.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from storefront.cart.handoff import clear_cart_after_payment, restore_cart_from_checkout
from storefront.coupon.coupon import record_usage
from storefront.domain import storefront
from storefront.errors import not_found
from storefront.gateway import get_gateway
from storefront.inventory import ledger
from storefront.inventory.reservation import cancel_reservation, confirm_reservation
from storefront.order.order import Order, OrderStatus, PaymentOutcome, next_status

logger = structlog.get_logger(__name__)

AMOUNT_TOLERANCE = 0.01


def get_order(order_id) -> Order:
    return current_domain.repository_for(Order).get(order_id)


def start_payment(order_id) -> Order:
    """Open a payment with the provider and record where the shopper approves it."""
    order = get_order(order_id)
    if order.status != OrderStatus.PENDING_PAYMENT.value:
        raise ValidationError({"status": [f"Cannot start payment for an order in {order.status} state"]})

    session = get_gateway().create_payment(str(order.id), order.grand_total, order.pricing.currency)
    if session.amount is not None and abs(session.amount - order.grand_total) > AMOUNT_TOLERANCE:
        logger.warning(
            "Payment amount mismatch",
            order_id=str(order.id),
            expected=order.grand_total,
            received=session.amount,
        )
        raise ValidationError(
            {"amount": [f"Payment amount {session.amount:.2f} does not match order total {order.grand_total:.2f}"]}
        )

    order.record_payment(session.payment_id, session.approval_url)
    current_domain.repository_for(Order).add(order)
    logger.info("Payment started", order_id=str(order.id), payment_id=session.payment_id)
    return order


def _release_holds(order) -> int:
    return cancel_reservation(order.id) + ledger.release_variation_stock(order.id)


def settle_payment(order_id, outcome: PaymentOutcome) -> Order:
    """Apply a payment outcome to an order, its holds, its coupons and its cart.

    Settling a paid order with a successful outcome again is a no-op.
    """
    order = get_order(order_id)
    if order.status == OrderStatus.PAID.value and outcome.succeeded:
        logger.info("Order already paid", order_id=str(order.id))
        return order

    target = next_status(OrderStatus(order.status), outcome)

    if target == OrderStatus.PAID:
        confirmed = confirm_reservation(order.id) + ledger.confirm_variation_reservations(order.id)
        if not confirmed:
            logger.warning("Paid order had no pending holds left to confirm", order_id=str(order.id))
        for coupon in order.applied_coupons:
            record_usage(coupon["coupon_id"], order.user_id, order.id, coupon["discount_amount"])
        clear_cart_after_payment(order.cart_id)
        order.mark_paid(outcome.external_transaction_id)
    else:
        released = _release_holds(order)
        restore_cart_from_checkout(order.cart_id)
        order.mark_payment_failed(outcome.reason)
        logger.info("Payment failed, holds released", order_id=str(order.id), released=released)

    current_domain.repository_for(Order).add(order)
    logger.info("Payment settled", order_id=str(order.id), status=order.status)
    return order


def capture_payment(order_id) -> Order:
    """Capture the order's payment and settle it.

    A provider error propagates untouched, leaving the holds pending until
    the provider answers or the sweeper expires them.
    """
    order = get_order(order_id)
    if order.status == OrderStatus.PAID.value:
        return order
    if not order.payment_id:
        raise ValidationError({"payment_id": ["Payment has not been started for this order"]})

    result = get_gateway().capture_payment(order.payment_id)
    return settle_payment(order.id, PaymentOutcome.from_capture(result))


def settle_by_payment_id(payment_id, outcome: PaymentOutcome) -> Order:
    """Settle whichever order owns ``payment_id`` (provider callbacks)."""
    order = current_domain.repository_for(Order).for_payment(payment_id)
    if order is None:
        raise not_found("Order", payment_id)
    return settle_payment(order.id, outcome)


def cancel_order(order_id, reason=None) -> Order:
    """Cancel an unpaid order, returning its holds and its cart to the shopper."""
    order = get_order(order_id)
    if order.status == OrderStatus.PENDING_PAYMENT.value:
        _release_holds(order)
        restore_cart_from_checkout(order.cart_id)

    order.cancel(reason)
    current_domain.repository_for(Order).add(order)
    logger.info("Order cancelled", order_id=str(order.id), reason=reason)
    return order


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@storefront.command(part_of="Order")
class StartPayment:
    order_id = Identifier(required=True)


@storefront.command(part_of="Order")
class SettlePayment:
    order_id = Identifier(required=True)
    succeeded = Boolean(required=True)
    external_transaction_id = String(max_length=255)
    reason = String(max_length=500)


@storefront.command(part_of="Order")
class CapturePayment:
    order_id = Identifier(required=True)


@storefront.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)


@storefront.command_handler(part_of=Order)
class OrderPaymentHandler:
    @handle(StartPayment)
    def start_payment(self, command):
        order = start_payment(command.order_id)
        return {"payment_id": order.payment_id, "approval_url": order.approval_url}

    @handle(SettlePayment)
    def settle_payment(self, command):
        outcome = PaymentOutcome(
            succeeded=command.succeeded,
            external_transaction_id=command.external_transaction_id,
            reason=command.reason,
        )
        return settle_payment(command.order_id, outcome).status

    @handle(CapturePayment)
    def capture_payment(self, command):
        return capture_payment(command.order_id).status

    @handle(CancelOrder)
    def cancel_order(self, command):
        return cancel_order(command.order_id, command.reason).status
