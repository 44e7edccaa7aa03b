"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderCreated:
    """An order was placed from a cart; its stock is on hold, not yet deducted."""

    __version__ = 1

    order_id = Identifier(required=True)
    cart_id = Identifier(required=True)
    user_id = Identifier()
    session_id = String()
    grand_total = Float(required=True)
    currency = String(default="USD")
    created_at = DateTime(required=True)


@storefront.event(part_of="Order")
class PaymentStarted:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String(required=True)
    approval_url = String()
    amount = Float(required=True)


@storefront.event(part_of="Order")
class OrderPaid:
    """Payment captured; held stock became a real decrement."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String()
    external_transaction_id = String()
    grand_total = Float(required=True)
    paid_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaymentFailed:
    """Payment was declined or abandoned; held stock went back to the pool."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String()
    reason = String()
    failed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)
