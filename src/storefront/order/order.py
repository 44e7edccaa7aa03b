"""Order aggregate — a priced snapshot of a cart, awaiting or past payment.

State machine::

    pending_payment ──> paid
           │
           ├──────────> payment_failed ──> cancelled
           └──────────> cancelled

Lines and pricing are frozen at creation. Only the status and the payment
references change afterwards.
"""

import json
from dataclasses import dataclass
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from storefront.cart.identity import CartIdentity, Guest, User
from storefront.domain import storefront
from storefront.order.events import OrderCancelled, OrderCreated, OrderPaid, OrderPaymentFailed, PaymentStarted
from storefront.utils.timestamps import utcnow


class OrderStatus(Enum):
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    PAYMENT_FAILED = "payment_failed"
    CANCELLED = "cancelled"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING_PAYMENT: {OrderStatus.PAID, OrderStatus.PAYMENT_FAILED, OrderStatus.CANCELLED},
    OrderStatus.PAYMENT_FAILED: {OrderStatus.CANCELLED},
    OrderStatus.PAID: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}


@dataclass(frozen=True)
class PaymentOutcome:
    """What the payment provider reported, however it was delivered."""

    succeeded: bool
    external_transaction_id: str | None = None
    reason: str | None = None

    @classmethod
    def from_capture(cls, result):
        return cls(
            succeeded=result.succeeded,
            external_transaction_id=result.external_transaction_id,
            reason=None if result.succeeded else (result.failure_reason or f"Capture status {result.status}"),
        )


def next_status(current: OrderStatus, outcome: PaymentOutcome) -> OrderStatus:
    """Where a payment outcome takes an order. Raises if the order cannot settle."""
    target = OrderStatus.PAID if outcome.succeeded else OrderStatus.PAYMENT_FAILED
    if target not in _VALID_TRANSITIONS[current]:
        raise ValidationError({"status": [f"Cannot transition from {current.value} to {target.value}"]})
    return target


@storefront.value_object(part_of="Order")
class OrderPricing:
    """Cart totals captured at checkout. Later catalogue changes never touch them."""

    subtotal = Float(default=0.0)
    sale_discount = Float(default=0.0)
    coupon_discount = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    tax_total = Float(default=0.0)
    grand_total = Float(default=0.0)
    currency = String(max_length=3, default="USD")


@storefront.value_object(part_of="Order")
class ShippingAddress:
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


@storefront.entity(part_of="Order")
class OrderItem:
    product_id = Integer(required=True)
    name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    configuration = Text(default="{}")  # Canonical JSON copied from the cart line
    unit_price = Float(required=True, min_value=0.0)
    total_price = Float(required=True, min_value=0.0)


@storefront.aggregate
class Order:
    cart_id = Identifier(required=True)
    user_id = Identifier()
    session_id = String(max_length=255)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING_PAYMENT.value)
    items = HasMany(OrderItem)
    pricing = ValueObject(OrderPricing)
    shipping_address = ValueObject(ShippingAddress)
    coupons = Text(default="[]")  # JSON: [{coupon_id, code, discount_amount}]
    payment_id = String(max_length=255)
    approval_url = String(max_length=1000)
    external_transaction_id = String(max_length=255)
    failure_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()
    paid_at = DateTime()

    @classmethod
    def create(cls, cart, totals, lines, shipping_address=None):
        """Snapshot a cart. ``lines`` are dicts of product_id, name, quantity, configuration and prices."""
        now = utcnow()
        order = cls(
            cart_id=str(cart.id),
            user_id=cart.user_id,
            session_id=cart.session_id,
            status=OrderStatus.PENDING_PAYMENT.value,
            items=[OrderItem(**line) for line in lines],
            pricing=OrderPricing(
                subtotal=totals.subtotal,
                sale_discount=totals.sale_discount,
                coupon_discount=totals.coupon_discount,
                shipping_cost=totals.shipping,
                tax_total=totals.tax,
                grand_total=totals.total,
                currency=totals.currency,
            ),
            shipping_address=ShippingAddress(**shipping_address) if shipping_address else None,
            coupons=json.dumps(
                [
                    {"coupon_id": str(c.coupon_id), "code": c.code, "discount_amount": c.discount_amount}
                    for c in cart.coupons
                ]
            ),
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                cart_id=str(cart.id),
                user_id=cart.user_id,
                session_id=cart.session_id,
                grand_total=order.pricing.grand_total,
                currency=order.pricing.currency,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def identity(self) -> CartIdentity:
        return User(user_id=str(self.user_id)) if self.user_id else Guest(session_id=self.session_id)

    @property
    def applied_coupons(self) -> list[dict]:
        return json.loads(self.coupons or "[]")

    @property
    def grand_total(self) -> float:
        return self.pricing.grand_total if self.pricing else 0.0

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: OrderStatus):
        current = OrderStatus(self.status)
        if target not in _VALID_TRANSITIONS[current]:
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target.value}"]})

    def record_payment(self, payment_id, approval_url=None):
        if self.status != OrderStatus.PENDING_PAYMENT.value:
            raise ValidationError({"status": [f"Cannot start payment for an order in {self.status} state"]})
        self.payment_id = payment_id
        self.approval_url = approval_url
        self.updated_at = utcnow()
        self.raise_(
            PaymentStarted(
                order_id=str(self.id),
                payment_id=payment_id,
                approval_url=approval_url,
                amount=self.grand_total,
            )
        )

    def mark_paid(self, external_transaction_id=None):
        self._assert_can_transition(OrderStatus.PAID)
        now = utcnow()
        self.status = OrderStatus.PAID.value
        self.external_transaction_id = external_transaction_id
        self.paid_at = now
        self.updated_at = now
        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                payment_id=self.payment_id,
                external_transaction_id=external_transaction_id,
                grand_total=self.grand_total,
                paid_at=now,
            )
        )

    def mark_payment_failed(self, reason=None):
        self._assert_can_transition(OrderStatus.PAYMENT_FAILED)
        now = utcnow()
        self.status = OrderStatus.PAYMENT_FAILED.value
        self.failure_reason = reason
        self.updated_at = now
        self.raise_(OrderPaymentFailed(order_id=str(self.id), payment_id=self.payment_id, reason=reason, failed_at=now))

    def cancel(self, reason=None):
        self._assert_can_transition(OrderStatus.CANCELLED)
        now = utcnow()
        self.status = OrderStatus.CANCELLED.value
        self.failure_reason = reason or self.failure_reason
        self.updated_at = now
        self.raise_(OrderCancelled(order_id=str(self.id), reason=reason, cancelled_at=now))


@storefront.repository(part_of=Order)
class OrderRepository:
    def for_payment(self, payment_id) -> Order | None:
        matches = self._dao.query.filter(payment_id=payment_id).all().items
        return matches[0] if matches else None

    def for_cart(self, cart_id) -> list[Order]:
        return self._dao.query.filter(cart_id=str(cart_id)).all().items
