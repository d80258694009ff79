"""
Stripe Checkout Adapter (card gateway)
======================================

Creates one-off Checkout Sessions priced inline from the pricing quote and
maps Stripe webhook events onto order confirmations.

- Order id     : Checkout Session id (cs_...)
- Directives   : {"sessionId": ..., "checkoutUrl": ...}
- Currencies   : USD; other quotes are re-priced in the `intl` region
- Verification : `Stripe-Signature` header against STRIPE_WEBHOOK_SECRET

Handled events:
- `checkout.session.completed`               → paid (unless payment_status == "unpaid")
- `checkout.session.async_payment_succeeded` → paid
- `checkout.session.async_payment_failed`    → failed
- `checkout.session.expired`                 → failed

Dependencies
------------
- stripe (official Python SDK)

Author: Builder's Program Development Team
Version: 1.0.0
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import stripe
from django.conf import settings

from ..exceptions import WebhookSignatureError
from .base import FAILED, PAID, CheckoutContext, Confirmation, GatewayAdapter, ProviderOrder

logger = logging.getLogger(__name__)

EVENT_OUTCOMES = {
    "checkout.session.completed": PAID,
    "checkout.session.async_payment_succeeded": PAID,
    "checkout.session.async_payment_failed": FAILED,
    "checkout.session.expired": FAILED,
}


class StripeCheckoutAdapter(GatewayAdapter):
    gateway = "stripe"
    supported_currencies = frozenset({"USD"})
    fallback_region = "intl"

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        client=None,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(timeout)
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET
        )
        # The SDK module itself unless a fake is injected.
        self.stripe = client or stripe

    # ---------- order creation ----------

    def _existing_customer_id(self, email: str) -> Optional[str]:
        try:
            customers = self.stripe.Customer.list(email=email, limit=1, api_key=self.api_key)
        except stripe.StripeError as exc:
            # Reuse is an optimization; checkout proceeds with customer_email.
            logger.warning("Stripe customer lookup failed for %s: %s", email, exc)
            return None
        data = customers.get("data") if isinstance(customers, dict) else customers.data
        return data[0]["id"] if data else None

    def create_order(self, user, quote, context: CheckoutContext) -> ProviderOrder:
        if not self.api_key:
            raise self._error("Stripe secret key not configured")

        customer_id = self._existing_customer_id(user.email)
        params: Dict[str, Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": quote.currency.lower(),
                        "product_data": {"name": context.product_name},
                        "unit_amount": quote.amount,
                    },
                    "quantity": 1,
                }
            ],
            "success_url": (
                f"{context.frontend_url}/pay/success"
                f"?gateway=stripe&session_id={{CHECKOUT_SESSION_ID}}"
            ),
            "cancel_url": f"{context.frontend_url}/pay/cancel",
            "metadata": {
                "user_id": str(user.pk),
                "course_id": quote.course_id or "",
                "coupon_code": quote.coupon_code or "",
            },
        }
        if customer_id:
            params["customer"] = customer_id
        else:
            params["customer_email"] = user.email

        try:
            session = self.stripe.checkout.Session.create(api_key=self.api_key, **params)
        except stripe.StripeError as exc:
            raise self._error(
                "Stripe Checkout session could not be created",
                provider_status=getattr(exc, "http_status", None),
                stripe_error=getattr(exc, "user_message", None) or str(exc),
            )

        return ProviderOrder(order_id=session["id"], raw={"url": session["url"]})

    def client_directives(self, provider_order: ProviderOrder) -> Dict[str, Any]:
        return {
            "sessionId": provider_order.order_id,
            "checkoutUrl": provider_order.raw.get("url"),
        }

    # ---------- webhooks ----------

    def verify_callback(self, body: bytes, headers: Mapping[str, str]) -> None:
        if not self.webhook_secret:
            logger.warning("STRIPE_WEBHOOK_SECRET not set, accepting unsigned Stripe event")
            return
        signature = headers.get("Stripe-Signature")
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header", gateway=self.gateway)
        try:
            stripe.WebhookSignature.verify_header(
                body.decode("utf-8"), signature, self.webhook_secret
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
            raise WebhookSignatureError(f"Invalid signature: {exc}", gateway=self.gateway)

    def extract_confirmation(
        self, payload: Dict[str, Any], headers: Mapping[str, str]
    ) -> Optional[Confirmation]:
        event_type = payload.get("type")
        outcome = EVENT_OUTCOMES.get(event_type)
        if outcome is None:
            return None

        session = (payload.get("data") or {}).get("object") or {}
        if not session.get("id"):
            return None
        if event_type == "checkout.session.completed" and session.get("payment_status") == "unpaid":
            # Delayed payment methods complete the session before the money moves;
            # async_payment_succeeded follows.
            return None

        currency = session.get("currency")
        return Confirmation(
            order_id=session["id"],
            outcome=outcome,
            payment_id=session.get("payment_intent"),
            amount=session.get("amount_total"),
            currency=currency.upper() if currency else None,
            event_id=payload.get("id"),
            event_type=event_type,
        )
