"""Coupon aggregate, redemption history and coupon administration.

Codes are case-insensitive: they are stored upper-cased and looked up the same
way. Discounts are computed against the cart subtotal and capped at both the
coupon's ``maximum_discount_amount`` and the subtotal itself.
"""

from enum import Enum

import structlog
from protean import handle, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import ConflictError, not_found
from storefront.utils.timestamps import as_utc, utcnow

logger = structlog.get_logger(__name__)


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "free_shipping"


def normalize_code(code) -> str:
    return (code or "").strip().upper()


@storefront.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    description = Text()
    discount_type = String(choices=DiscountType, default=DiscountType.PERCENTAGE.value)
    discount_value = Float(default=0.0, min_value=0.0)
    minimum_order_amount = Float(min_value=0.0)
    maximum_discount_amount = Float(min_value=0.0)
    usage_limit = Integer(min_value=0)
    usage_count = Integer(default=0)
    per_user_limit = Integer(default=1, min_value=0)
    valid_from = DateTime()
    valid_until = DateTime()
    region = String(max_length=2)  # None applies everywhere
    is_active = Boolean(default=True)
    created_at = DateTime()

    @invariant.post
    def percentage_must_be_within_bounds(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and self.discount_value > 100:
            raise ValidationError({"discount_value": ["Percentage discounts cannot exceed 100"]})

    @classmethod
    def create(cls, code, discount_type, discount_value, **kwargs):
        region = kwargs.pop("region", None)
        return cls(
            code=normalize_code(code),
            discount_type=discount_type,
            discount_value=discount_value,
            region=region.lower() if region else None,
            created_at=utcnow(),
            **kwargs,
        )

    # -------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------
    def ensure_applicable(self, subtotal, region=None, as_of=None):
        """Raise unless the coupon can be used on a cart with this subtotal and region.

        Validation problems raise ``ValidationError``; an exhausted usage limit
        raises ``ConflictError``.
        """
        now = as_utc(as_of or utcnow())
        if not self.is_active:
            raise ValidationError({"code": ["Coupon is not active"]})
        if self.valid_from and as_utc(self.valid_from) > now:
            raise ValidationError({"code": ["Coupon is not yet valid"]})
        if self.valid_until and as_utc(self.valid_until) < now:
            raise ValidationError({"code": ["Coupon has expired"]})
        if self.region and region and self.region != region.lower():
            raise ValidationError({"code": [f"Coupon is only valid in region {self.region.upper()}"]})
        if self.minimum_order_amount and subtotal < self.minimum_order_amount:
            raise ValidationError(
                {"code": [f"Minimum order amount of {self.minimum_order_amount:.2f} required for this coupon"]}
            )
        if self.usage_limit is not None and (self.usage_count or 0) >= self.usage_limit:
            raise ConflictError("Coupon usage limit has been reached")

    def discount_for(self, subtotal) -> float:
        """Discount on ``subtotal``; free-shipping coupons discount nothing here."""
        if self.discount_type == DiscountType.PERCENTAGE.value:
            discount = subtotal * (self.discount_value or 0.0) / 100
        elif self.discount_type == DiscountType.FIXED.value:
            discount = self.discount_value or 0.0
        else:
            discount = 0.0

        if self.maximum_discount_amount is not None:
            discount = min(discount, self.maximum_discount_amount)
        discount = min(discount, subtotal)
        return round(max(0.0, discount), 2)

    @property
    def waives_shipping(self) -> bool:
        return self.discount_type == DiscountType.FREE_SHIPPING.value

    def record_redemption(self):
        self.usage_count = (self.usage_count or 0) + 1


@storefront.repository(part_of=Coupon)
class CouponRepository:
    def find_active_by_code(self, code) -> Coupon | None:
        """Active coupon for a code, matched case-insensitively."""
        matches = self._dao.query.filter(code=normalize_code(code), is_active=True).all().items
        return matches[0] if matches else None

    def find_by_code(self, code) -> Coupon | None:
        matches = self._dao.query.filter(code=normalize_code(code)).all().items
        return matches[0] if matches else None


@storefront.aggregate
class CouponUsage:
    coupon_id = Identifier(required=True)
    code = String(required=True, max_length=50)
    user_id = Identifier()
    order_id = Identifier(required=True)
    discount_amount = Float(default=0.0)
    used_at = DateTime()


@storefront.repository(part_of=CouponUsage)
class CouponUsageRepository:
    def count_for_user(self, code, user_id) -> int:
        """How often a user has redeemed a coupon code."""
        if not user_id:
            return 0
        return len(self._dao.query.filter(code=normalize_code(code), user_id=str(user_id)).all().items)


def find_coupon(code) -> Coupon:
    """Active coupon for ``code`` or ``ObjectNotFoundError``."""
    coupon = current_domain.repository_for(Coupon).find_active_by_code(code)
    if coupon is None:
        raise not_found("Coupon", normalize_code(code))
    return coupon


def ensure_user_may_redeem(coupon: Coupon, user_id) -> None:
    if not user_id or not coupon.per_user_limit:
        return
    used = current_domain.repository_for(CouponUsage).count_for_user(coupon.code, user_id)
    if used >= coupon.per_user_limit:
        raise ConflictError("You have already used this coupon the maximum number of times")


def record_usage(coupon_id, user_id, order_id, discount_amount) -> CouponUsage:
    """Log a redemption and bump the coupon's running usage count."""
    repo = current_domain.repository_for(Coupon)
    coupon = repo.get(coupon_id)
    coupon.record_redemption()
    repo.add(coupon)

    usage = CouponUsage(
        coupon_id=str(coupon.id),
        code=coupon.code,
        user_id=str(user_id) if user_id else None,
        order_id=str(order_id),
        discount_amount=discount_amount,
        used_at=utcnow(),
    )
    current_domain.repository_for(CouponUsage).add(usage)
    logger.info("Coupon redeemed", code=coupon.code, order_id=str(order_id), discount=discount_amount)
    return usage


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------
@storefront.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=50)
    description = Text()
    discount_type = String(choices=DiscountType, default=DiscountType.PERCENTAGE.value)
    discount_value = Float(required=True, min_value=0.0)
    minimum_order_amount = Float()
    maximum_discount_amount = Float()
    usage_limit = Integer()
    per_user_limit = Integer(default=1)
    valid_from = DateTime()
    valid_until = DateTime()
    region = String(max_length=2)


@storefront.command(part_of="Coupon")
class DeactivateCoupon:
    code = String(required=True, max_length=50)


@storefront.command_handler(part_of=Coupon)
class CouponAdministrationHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        if repo.find_by_code(command.code) is not None:
            raise ConflictError(f"Coupon {normalize_code(command.code)} already exists")

        coupon = Coupon.create(
            code=command.code,
            discount_type=command.discount_type,
            discount_value=command.discount_value,
            description=command.description,
            minimum_order_amount=command.minimum_order_amount,
            maximum_discount_amount=command.maximum_discount_amount,
            usage_limit=command.usage_limit,
            per_user_limit=command.per_user_limit,
            valid_from=command.valid_from,
            valid_until=command.valid_until,
            region=command.region,
        )
        repo.add(coupon)
        logger.info("Coupon created", code=coupon.code)
        return str(coupon.id)

    @handle(DeactivateCoupon)
    def deactivate_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.find_by_code(command.code)
        if coupon is None:
            raise not_found("Coupon", normalize_code(command.code))
        coupon.is_active = False
        repo.add(coupon)
