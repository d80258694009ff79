"""
Order Service

`create_order` is the one code path behind the three checkout endpoints:

    1. reject callers without an authenticated account (Unauthenticated)
    2. price the checkout; if the gateway cannot charge the quoted currency,
       re-price in the gateway's fallback region or reject (ValidationError)
    3. create the provider order (GatewayError, nothing stored)
    4. store the pending Order with the quote's amount, currency and coupon
       (PersistenceError, provider order left orphaned and logged)
    5. return the client directives for the gateway

`claim_orders_for_user` links guest orders (stored with an e-mail only) to
an account and projects the paid ones. It only runs when explicitly asked
for, never as a side effect of login.

Author: Builder's Program Development Team
Version: 1.0.0
"""

from __future__ import annotations

import logging
from typing import Optional

from django.db import DatabaseError

from academy.courses.pricing import PriceQuote, PriceSelector, resolve_price
from academy.enrollments.projector import EnrollmentProjector

from .exceptions import PersistenceError, Unauthenticated, ValidationError
from .gateways import CheckoutContext, CreatedOrder, GatewayAdapter
from .models import Order
from .tracing import StepTrace

logger = logging.getLogger(__name__)


def quote_for_gateway(adapter: GatewayAdapter, selector: PriceSelector, trace: StepTrace) -> PriceQuote:
    quote = resolve_price(selector)
    trace.step("Pricing calculated", **quote.to_response())
    if adapter.supports(quote.currency):
        return quote

    if not adapter.fallback_region:
        raise ValidationError(
            f"Currency {quote.currency} is not supported by {adapter.gateway}"
        )

    trace.step(
        "Currency not supported by gateway, re-pricing",
        original_currency=quote.currency,
        fallback_region=adapter.fallback_region,
    )
    quote = resolve_price(selector.with_region(adapter.fallback_region))
    if not adapter.supports(quote.currency):
        raise ValidationError(
            f"Currency {quote.currency} is not supported by {adapter.gateway}"
        )
    trace.step("Using fallback pricing", currency=quote.currency, amount=quote.amount)
    return quote


def create_order(
    adapter: GatewayAdapter,
    user,
    selector: PriceSelector,
    context: Optional[CheckoutContext] = None,
    trace: Optional[StepTrace] = None,
) -> CreatedOrder:
    """
    Create a provider order and store it as `pending`.

    Raises:
        Unauthenticated: No authenticated user, or the user has no e-mail
        NotFound / ValidationError: Pricing could not be resolved for the gateway
        GatewayError: The provider call failed
        PersistenceError: The provider order exists but could not be stored
    """
    trace = trace or StepTrace(f"{adapter.gateway.upper()}-CREATE-ORDER")
    context = context or CheckoutContext.from_settings()

    if user is None or not user.is_authenticated or not user.email:
        raise Unauthenticated()
    trace.step("User authenticated", user_id=user.pk, email=user.email)

    quote = quote_for_gateway(adapter, selector, trace)

    provider_order = adapter.create_order(user, quote, context)
    trace.step("Provider order created", order_id=provider_order.order_id)

    try:
        Order.objects.create(
            gateway=adapter.gateway,
            order_id=provider_order.order_id,
            user=user,
            user_email=user.email,
            course_id=quote.course_id,
            amount=quote.amount,
            currency=quote.currency,
            coupon_code=quote.coupon_code,
            status=Order.Status.PENDING,
        )
    except DatabaseError as exc:
        trace.error(
            "Database insert error, provider order has no local record",
            exc_info=True,
            gateway=adapter.gateway,
            order_id=provider_order.order_id,
            error=str(exc),
        )
        raise PersistenceError(
            f"Failed to store order: {exc}",
            details={"gateway": adapter.gateway, "order_id": provider_order.order_id},
        )
    trace.step("Order stored in database", order_id=provider_order.order_id)

    return CreatedOrder(
        order_id=provider_order.order_id,
        gateway=adapter.gateway,
        client_directives=adapter.client_directives(provider_order),
    )


def claim_orders_for_user(user, projector=None) -> int:
    """
    Attach guest orders placed with `user.email` to `user` and project any
    that are already paid.

    Returns:
        Number of orders claimed
    """
    if not user.email:
        return 0

    guest_orders = Order.objects.filter(user__isnull=True, user_email__iexact=user.email)
    claimed_ids = list(guest_orders.values_list("pk", flat=True))
    if not claimed_ids:
        return 0

    Order.objects.filter(pk__in=claimed_ids).update(user=user)
    logger.info("Claimed %s guest order(s) for %s", len(claimed_ids), user.email)

    paid = Order.objects.filter(pk__in=claimed_ids, status=Order.Status.PAID).order_by("paid_at")
    if paid.exists():
        projector = projector or EnrollmentProjector()
        for order in paid:
            projector.project(order)
    return len(claimed_ids)
