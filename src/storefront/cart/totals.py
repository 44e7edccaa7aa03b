"""Cart totals and the display view of a cart.

Line totals come from the prices stored on each line. The only live component
is the product sale discount, which follows the current sale window.
"""

from dataclasses import dataclass, field

from storefront.catalogue import reader
from storefront.config import default_currency
from storefront.coupon.coupon import DiscountType


@dataclass(frozen=True)
class CartTotals:
    subtotal: float
    sale_discount: float
    coupon_discount: float
    discount: float
    shipping: float
    tax: float
    total: float
    currency: str
    item_count: int
    free_shipping: bool = False


@dataclass(frozen=True)
class CartLine:
    item_id: str
    product_id: int
    product_name: str | None
    image_url: str | None
    on_sale: bool
    quantity: int
    unit_price: float
    total_price: float
    configuration: dict


@dataclass(frozen=True)
class CartView:
    cart_id: str
    status: str
    region: str
    expires_at: object
    lines: tuple[CartLine, ...]
    coupons: tuple[dict, ...]
    totals: CartTotals
    warnings: tuple[str, ...] = field(default_factory=tuple)


def compute_totals(cart, as_of=None, products=None) -> CartTotals:
    """Σ stored line totals − live sale discount − stored coupon discounts + shipping + tax."""
    if products is None:
        products = {i.product_id: reader.find_product(i.product_id) for i in cart.items}

    subtotal = sum(item.total_price or 0.0 for item in cart.items)
    sale_discount = sum(
        products[item.product_id].sale_discount(as_of) * item.quantity
        for item in cart.items
        if products.get(item.product_id) is not None
    )
    coupon_discount = sum(c.discount_amount or 0.0 for c in cart.coupons)
    free_shipping = any(c.discount_type == DiscountType.FREE_SHIPPING.value for c in cart.coupons)

    # Shipping and tax are quoted outside the storefront core
    shipping = 0.0
    tax = 0.0

    discount = sale_discount + coupon_discount
    total = max(0.0, subtotal - discount + shipping + tax)
    currency = next((p.currency for p in products.values() if p is not None and p.currency), default_currency())

    return CartTotals(
        subtotal=round(subtotal, 2),
        sale_discount=round(sale_discount, 2),
        coupon_discount=round(coupon_discount, 2),
        discount=round(discount, 2),
        shipping=round(shipping, 2),
        tax=round(tax, 2),
        total=round(total, 2),
        currency=currency,
        item_count=cart.item_count,
        free_shipping=free_shipping,
    )


def build_view(cart, as_of=None, warnings=()) -> CartView:
    products = {i.product_id: reader.find_product(i.product_id) for i in cart.items}
    lines = []
    for item in sorted(cart.items, key=lambda i: str(i.added_at or "")):
        product = products.get(item.product_id)
        lines.append(
            CartLine(
                item_id=str(item.id),
                product_id=item.product_id,
                product_name=product.name if product else None,
                image_url=product.image_url if product else None,
                on_sale=product.is_on_sale(as_of) if product else False,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
                configuration=item.configuration_dict,
            )
        )

    coupons = tuple(
        {"code": c.code, "discount_type": c.discount_type, "discount_amount": c.discount_amount} for c in cart.coupons
    )
    return CartView(
        cart_id=str(cart.id),
        status=cart.status,
        region=cart.region,
        expires_at=cart.expires_at,
        lines=tuple(lines),
        coupons=coupons,
        totals=compute_totals(cart, as_of=as_of, products=products),
        warnings=tuple(warnings),
    )
