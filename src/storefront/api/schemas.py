"""Pydantic request/response schemas for the Storefront API.

These are external contracts, kept separate from the internal Protean
commands and result dataclasses.
"""

from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    street: str
    city: str
    state: str | None = None
    postal_code: str
    country: str


class IdentitySchema(BaseModel):
    """Exactly one of ``user_id`` / ``session_id``."""

    user_id: str | None = None
    session_id: str | None = None


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class AddToCartRequest(IdentitySchema):
    product_id: int
    quantity: int = Field(ge=1, default=1)
    configuration: dict[str, Any] | None = None
    region: str | None = Field(default=None, max_length=2)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "session_id": "sess-001",
                    "product_id": 42,
                    "quantity": 1,
                    "configuration": {"variations": {"7": 31}, "addons": [{"addonId": 3, "optionId": 9}]},
                }
            ]
        }
    }


class UpdateCartQuantityRequest(BaseModel):
    quantity: int


class ApplyCouponRequest(BaseModel):
    code: str


class MergeGuestCartRequest(BaseModel):
    session_id: str
    user_id: str


# ---------------------------------------------------------------------------
# Pricing Request Schemas
# ---------------------------------------------------------------------------
class PriceRequest(BaseModel):
    configuration: dict[str, Any] | None = None
    quantity: int = Field(default=1, ge=1)


class ConfigurationRequest(BaseModel):
    configuration: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(IdentitySchema):
    shipping_address: AddressSchema | None = None


class SettlePaymentRequest(BaseModel):
    succeeded: bool
    external_transaction_id: str | None = None
    reason: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class CartIdResponse(BaseModel):
    cart_id: str


class OrderIdResponse(BaseModel):
    order_id: str


class CouponAppliedResponse(BaseModel):
    code: str
    discount: float


class CountResponse(BaseModel):
    count: int


class AddItemResponse(BaseModel):
    cart_id: str
    item_id: str
    product_id: int
    quantity: int
    unit_price: float
    total_price: float
    configuration: dict[str, Any]
    merged: bool
    warnings: list[str] = []


class ValidationResponse(BaseModel):
    valid: bool
    errors: list[str] | dict[str, list[str]]


class AvailabilityResponse(BaseModel):
    product_id: int
    available: bool
    available_quantity: int
    breakdown: list[dict[str, Any]] = []


class PaymentSessionResponse(BaseModel):
    order_id: str
    payment_id: str
    approval_url: str | None = None
