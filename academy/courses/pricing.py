"""
Pricing Resolver

Computes the amount a checkout is charged, in minor currency units, from the
course pricing row, the buyer's region, the current time and an optional
coupon.

The computation is split in two layers:

- `compute_quote(...)` is a pure function of (pricing row, region, now, coupon)
  and is what the tests pin down.
- `PricingResolver` loads the rows from the database and calls it.

Rules:
    1. Region selects the currency (`PRICING_REGIONS`); unknown regions are rejected.
    2. Early bird is active when the pricing row enables it AND either no end
       date is configured or `now` is before the end date. A missing end date
       keeps the tier active on purpose.
    3. The coupon is applied after the base price: percent coupons multiply and
       floor, flat coupons subtract. Both clamp at zero.
    4. Unknown or inactive coupon codes are ignored.

Author: Builder's Program Development Team
Version: 1.0.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from core.payments.exceptions import NotFound, ValidationError

from .models import Coupon, Course, CoursePricing

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceSelector:
    """What the caller wants priced. Region is decided server-side by the views."""

    course_id: Optional[str] = None
    region: Optional[str] = None
    early_bird_override: Optional[bool] = None
    coupon: Optional[str] = None

    def with_region(self, region: str) -> "PriceSelector":
        return PriceSelector(
            course_id=self.course_id,
            region=region,
            early_bird_override=self.early_bird_override,
            coupon=self.coupon,
        )


@dataclass(frozen=True)
class AppliedCoupon:
    code: str
    type: str
    value: int

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "type": self.type, "value": self.value}


@dataclass(frozen=True)
class PriceQuote:
    """
    Result of a pricing run. `amount` is in minor units (paise, cents).
    """

    region: str
    currency: str
    amount: int
    display: str
    early_bird: bool
    course_id: Optional[str] = None
    coupon_applied: Optional[AppliedCoupon] = field(default=None)

    @property
    def coupon_code(self) -> Optional[str]:
        return self.coupon_applied.code if self.coupon_applied else None

    def to_response(self) -> Dict[str, Any]:
        """Serialize in the camelCase shape the SPA expects."""
        data: Dict[str, Any] = {
            "region": self.region,
            "currency": self.currency,
            "amount": self.amount,
            "display": self.display,
            "earlyBird": self.early_bird,
            "courseId": self.course_id,
        }
        if self.coupon_applied:
            data["couponApplied"] = self.coupon_applied.to_dict()
        return data


# --- pure helpers ---


def is_early_bird_active(pricing: CoursePricing, now: datetime) -> bool:
    if not pricing.is_early_bird_active:
        return False
    if pricing.early_bird_end_date is None:
        return True
    return now < pricing.early_bird_end_date


def apply_coupon(amount: int, coupon: Optional[Coupon]) -> int:
    """
    Apply a coupon to a minor-unit amount. Never returns a negative amount.
    """
    if coupon is None:
        return amount
    if coupon.type == Coupon.Type.PERCENT:
        return max((amount * (100 - coupon.value)) // 100, 0)
    if coupon.type == Coupon.Type.FLAT:
        return max(amount - coupon.value, 0)
    logger.warning("Unknown coupon type %s on %s, ignoring", coupon.type, coupon.code)
    return amount


def format_display(amount: int, symbol: str) -> str:
    major = Decimal(amount) / 100
    if major == major.to_integral_value():
        return f"{symbol}{int(major):,}"
    return f"{symbol}{major:,.2f}"


def compute_quote(
    pricing: CoursePricing,
    region: str,
    now: datetime,
    coupon: Optional[Coupon] = None,
    early_bird_override: Optional[bool] = None,
    regions: Optional[Mapping[str, Mapping[str, str]]] = None,
) -> PriceQuote:
    """
    Price one checkout. Same inputs always give the same quote.

    Raises:
        ValidationError: If the region is not configured
    """
    regions = regions if regions is not None else settings.PRICING_REGIONS
    region_cfg = regions.get(region)
    if region_cfg is None:
        raise ValidationError(f"Unsupported region: {region}")

    if early_bird_override is not None:
        early_bird = bool(early_bird_override)
    else:
        early_bird = is_early_bird_active(pricing, now)

    amount = pricing.major_price(region_cfg["column"], early_bird) * 100
    amount = apply_coupon(amount, coupon)

    applied = None
    if coupon is not None:
        applied = AppliedCoupon(code=coupon.code, type=coupon.type, value=coupon.value)

    return PriceQuote(
        region=region,
        currency=region_cfg["currency"],
        amount=amount,
        display=format_display(amount, region_cfg["symbol"]),
        early_bird=early_bird,
        course_id=str(pricing.course_id) if pricing.course_id else None,
        coupon_applied=applied,
    )


# --- database-backed resolver ---


class PricingResolver:
    """
    Loads course pricing and coupons and produces a `PriceQuote`.

    Example:
        >>> quote = PricingResolver().resolve(PriceSelector(region="in", coupon="early10"))
        >>> quote.amount
        584910
    """

    def __init__(self, clock: Callable[[], datetime] = timezone.now) -> None:
        self.clock = clock

    def resolve(self, selector: PriceSelector) -> PriceQuote:
        region = selector.region or settings.PRICING_DEFAULT_REGION
        pricing = self._load_pricing(selector.course_id)
        coupon = self._load_coupon(selector.coupon)

        quote = compute_quote(
            pricing,
            region,
            self.clock(),
            coupon=coupon,
            early_bird_override=selector.early_bird_override,
        )
        logger.info(
            "Priced course=%s region=%s currency=%s amount=%s early_bird=%s coupon=%s",
            quote.course_id,
            quote.region,
            quote.currency,
            quote.amount,
            quote.early_bird,
            quote.coupon_code,
        )
        return quote

    def _load_pricing(self, course_id: Optional[str]) -> CoursePricing:
        courses = Course.objects.filter(is_active=True)
        try:
            if course_id:
                course = courses.filter(pk=course_id).first()
                if course is None:
                    raise NotFound(f"Course not found or inactive: {course_id}")
            else:
                course = courses.order_by("-created_at").first()
                if course is None:
                    raise NotFound("No active course found")
        except DjangoValidationError:
            raise ValidationError(f"Invalid course id: {course_id}")

        try:
            return course.pricing
        except CoursePricing.DoesNotExist:
            raise NotFound(f"Course pricing not found for course {course.pk}")

    def _load_coupon(self, code: Optional[str]) -> Optional[Coupon]:
        code = (code or "").strip().upper()
        if not code:
            return None
        coupon = Coupon.objects.filter(code__iexact=code, active=True).first()
        if coupon is None:
            logger.info("Coupon %s not found or inactive, ignoring", code)
        return coupon


def resolve_price(selector: PriceSelector, *, now: Optional[datetime] = None) -> PriceQuote:
    """Convenience wrapper around `PricingResolver`."""
    clock = (lambda: now) if now is not None else timezone.now
    return PricingResolver(clock=clock).resolve(selector)
