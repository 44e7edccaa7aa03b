"""FastAPI routes for the Storefront: carts, pricing/availability and orders.

Writes go through Protean commands; reads call the query functions directly.
"""

from dataclasses import asdict

from fastapi import APIRouter
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    AddItemResponse,
    AddToCartRequest,
    ApplyCouponRequest,
    AvailabilityResponse,
    CancelOrderRequest,
    CartIdResponse,
    ConfigurationRequest,
    CountResponse,
    CouponAppliedResponse,
    CreateOrderRequest,
    MergeGuestCartRequest,
    OrderIdResponse,
    PaymentSessionResponse,
    PriceRequest,
    SettlePaymentRequest,
    StatusResponse,
    UpdateCartQuantityRequest,
    ValidationResponse,
)
from storefront.cart.coupons import ApplyCoupon, RemoveCoupon
from storefront.cart.identity import identity_from
from storefront.cart.items import AddItemToCart, ClearCart, RemoveCartItem, UpdateCartItemQuantity
from storefront.cart.lookup import get_cart
from storefront.cart.management import (
    MergeGuestCart,
    get_cart_item_count,
    get_cart_with_items,
    validate_cart_for_checkout,
)
from storefront.catalogue import reader
from storefront.inventory import ledger
from storefront.inventory.bundles import check_bundle_availability, validate_bundle_configuration
from storefront.inventory.reservation import get_available_stock
from storefront.order.creation import CreateOrder
from storefront.order.payment import CancelOrder, CapturePayment, SettlePayment, StartPayment, get_order
from storefront.pricing.calculator import calculate_price, price_range, validate_configuration
from storefront.pricing.configuration import ProductConfiguration

# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.get("/current")
async def current_cart(user_id: str | None = None, session_id: str | None = None, region: str | None = None):
    view = get_cart_with_items(identity_from(session_id=session_id, user_id=user_id), region=region)
    return asdict(view)


@cart_router.get("/current/count", response_model=CountResponse)
async def current_cart_count(user_id: str | None = None, session_id: str | None = None) -> CountResponse:
    return CountResponse(count=get_cart_item_count(identity_from(session_id=session_id, user_id=user_id)))


@cart_router.post("/items", status_code=201, response_model=AddItemResponse)
async def add_cart_item(body: AddToCartRequest) -> AddItemResponse:
    command = AddItemToCart(
        user_id=body.user_id,
        session_id=body.session_id,
        product_id=body.product_id,
        quantity=body.quantity,
        configuration=ProductConfiguration.from_raw(body.configuration).canonical_json(),
        region=body.region,
    )
    result = current_domain.process(command, asynchronous=False)
    data = asdict(result)
    data["warnings"] = list(result.warnings)
    return AddItemResponse(**data)


@cart_router.put("/{cart_id}/items/{item_id}", response_model=StatusResponse)
async def update_cart_item(cart_id: str, item_id: str, body: UpdateCartQuantityRequest) -> StatusResponse:
    command = UpdateCartItemQuantity(cart_id=cart_id, item_id=item_id, quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{cart_id}/items/{item_id}", response_model=StatusResponse)
async def remove_cart_item(cart_id: str, item_id: str) -> StatusResponse:
    current_domain.process(RemoveCartItem(cart_id=cart_id, item_id=item_id), asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{cart_id}/items", response_model=StatusResponse)
async def clear_cart(cart_id: str) -> StatusResponse:
    current_domain.process(ClearCart(cart_id=cart_id), asynchronous=False)
    return StatusResponse()


@cart_router.post("/{cart_id}/coupons", response_model=CouponAppliedResponse)
async def apply_coupon(cart_id: str, body: ApplyCouponRequest) -> CouponAppliedResponse:
    discount = current_domain.process(ApplyCoupon(cart_id=cart_id, code=body.code), asynchronous=False)
    return CouponAppliedResponse(code=body.code.strip().upper(), discount=discount)


@cart_router.delete("/{cart_id}/coupons/{code}", response_model=StatusResponse)
async def remove_coupon(cart_id: str, code: str) -> StatusResponse:
    current_domain.process(RemoveCoupon(cart_id=cart_id, code=code), asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{cart_id}/coupons", response_model=StatusResponse)
async def remove_all_coupons(cart_id: str) -> StatusResponse:
    current_domain.process(RemoveCoupon(cart_id=cart_id), asynchronous=False)
    return StatusResponse()


@cart_router.post("/merge", response_model=CartIdResponse)
async def merge_guest_cart(body: MergeGuestCartRequest) -> CartIdResponse:
    command = MergeGuestCart(session_id=body.session_id, user_id=body.user_id)
    result = current_domain.process(command, asynchronous=False)
    return CartIdResponse(cart_id=result)


@cart_router.get("/{cart_id}/validate", response_model=ValidationResponse)
async def validate_cart(cart_id: str) -> ValidationResponse:
    valid, errors = validate_cart_for_checkout(get_cart(cart_id))
    return ValidationResponse(valid=valid, errors=errors)


# ---------------------------------------------------------------------------
# Pricing / Availability Router
# ---------------------------------------------------------------------------
pricing_router = APIRouter(prefix="/products", tags=["pricing"])


@pricing_router.post("/{product_id}/price")
async def quote_price(product_id: int, body: PriceRequest):
    return calculate_price(product_id, body.configuration, body.quantity).to_dict()


@pricing_router.get("/{product_id}/price-range")
async def get_price_range(product_id: int):
    return price_range(product_id)


@pricing_router.post("/{product_id}/availability", response_model=AvailabilityResponse)
async def check_availability(product_id: int, body: ConfigurationRequest) -> AvailabilityResponse:
    product = reader.get_product(product_id)
    if product.is_bundle:
        result = check_bundle_availability(product.id, body.configuration)
        breakdown = [asdict(member) for member in result.items]
        quantity = result.available_quantity
    else:
        result = ledger.check_availability(product.id, body.configuration)
        breakdown = [asdict(entry) for entry in result.breakdown]
        quantity = get_available_stock(product.id, body.configuration)

    return AvailabilityResponse(
        product_id=product.id,
        available=quantity > 0 or product.allows_backorders,
        available_quantity=quantity,
        breakdown=breakdown,
    )


@pricing_router.post("/{product_id}/validate-configuration", response_model=ValidationResponse)
async def validate_product_configuration(product_id: int, body: ConfigurationRequest) -> ValidationResponse:
    product = reader.get_active_product(product_id)
    if product.is_bundle:
        valid, errors = validate_bundle_configuration(product.id, body.configuration)
    else:
        valid, errors = validate_configuration(product.id, body.configuration)
    return ValidationResponse(valid=valid, errors=errors)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def create_order(body: CreateOrderRequest) -> OrderIdResponse:
    command = CreateOrder(
        user_id=body.user_id,
        session_id=body.session_id,
        shipping_address=body.shipping_address.model_dump_json() if body.shipping_address else None,
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=result)


@order_router.get("/{order_id}")
async def order_details(order_id: str):
    return get_order(order_id).to_dict()


@order_router.post("/{order_id}/payment", response_model=PaymentSessionResponse)
async def start_payment(order_id: str) -> PaymentSessionResponse:
    session = current_domain.process(StartPayment(order_id=order_id), asynchronous=False)
    return PaymentSessionResponse(order_id=order_id, **session)


@order_router.post("/{order_id}/capture", response_model=StatusResponse)
async def capture_payment(order_id: str) -> StatusResponse:
    status = current_domain.process(CapturePayment(order_id=order_id), asynchronous=False)
    return StatusResponse(status=status)


@order_router.post("/{order_id}/settle", response_model=StatusResponse)
async def settle_payment(order_id: str, body: SettlePaymentRequest) -> StatusResponse:
    command = SettlePayment(
        order_id=order_id,
        succeeded=body.succeeded,
        external_transaction_id=body.external_transaction_id,
        reason=body.reason,
    )
    status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=status)


@order_router.post("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> StatusResponse:
    status = current_domain.process(CancelOrder(order_id=order_id, reason=body.reason), asynchronous=False)
    return StatusResponse(status=status)
