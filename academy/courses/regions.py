"""
Server-side region selection.

The buyer's region (and with it the currency) is taken from the country
header the CDN adds to every request, never from the request body. Client
supplied `region` / `earlyBirdOverride` values are honoured only when
PRICING_ALLOW_CLIENT_OVERRIDES is on, which defaults to DEBUG.
"""

import logging
from typing import Any, Mapping, Optional

from django.conf import settings

from .pricing import PriceSelector

logger = logging.getLogger(__name__)


def detect_region(request) -> str:
    for header in settings.PRICING_COUNTRY_HEADERS:
        country = (request.META.get(header) or "").strip().upper()
        if country:
            return settings.PRICING_COUNTRY_REGIONS.get(country, settings.PRICING_DEFAULT_REGION)
    return settings.PRICING_DEFAULT_REGION


def selector_from_request(request, data: Mapping[str, Any]) -> PriceSelector:
    """
    Build the pricing selector for a request from validated serializer data.
    """
    region = detect_region(request)
    early_bird_override: Optional[bool] = None

    if settings.PRICING_ALLOW_CLIENT_OVERRIDES:
        region = data.get("region") or region
        early_bird_override = data.get("early_bird_override")
    elif data.get("region") or data.get("early_bird_override") is not None:
        logger.info("Ignoring client pricing overrides (PRICING_ALLOW_CLIENT_OVERRIDES is off)")

    course_id = data.get("course_id")
    return PriceSelector(
        course_id=str(course_id) if course_id else None,
        region=region,
        early_bird_override=early_bird_override,
        coupon=data.get("coupon") or None,
    )
