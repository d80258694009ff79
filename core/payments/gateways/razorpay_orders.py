"""
Razorpay Orders Adapter (regional gateway)

- Order id     : Razorpay order id (order_...)
- Directives   : {"orderId": ..., "keyId": ...} for Razorpay Checkout.js
- Currencies   : INR only, no fallback region
- Verification : HMAC-SHA256 hex of the raw body with RAZORPAY_WEBHOOK_SECRET,
                 sent as `X-Razorpay-Signature`

Handled events:
- `payment.captured` → paid
- `order.paid`       → paid
- `payment.failed`   → failed

Author: Builder's Program Development Team
Version: 1.0.0
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from typing import Any, Dict, Mapping, Optional

import requests
from django.conf import settings

from ..exceptions import WebhookSignatureError
from .base import FAILED, PAID, CheckoutContext, Confirmation, GatewayAdapter, ProviderOrder

logger = logging.getLogger(__name__)

EVENT_OUTCOMES = {
    "payment.captured": PAID,
    "order.paid": PAID,
    "payment.failed": FAILED,
}


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class RazorpayOrdersAdapter(GatewayAdapter):
    gateway = "razorpay"
    supported_currencies = frozenset({"INR"})
    fallback_region = None

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        api_base: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(timeout)
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.RAZORPAY_WEBHOOK_SECRET
        )
        self.api_base = (api_base or settings.RAZORPAY_API_BASE).rstrip("/")
        self.session = session or requests.Session()

    def create_order(self, user, quote, context: CheckoutContext) -> ProviderOrder:
        if not self.key_id or not self.key_secret:
            raise self._error("Razorpay credentials not configured")

        payload = {
            "amount": quote.amount,
            "currency": quote.currency,
            "receipt": f"receipt_{int(time.time() * 1000)}",
            "notes": {
                "email": user.email,
                "user_id": str(user.pk),
                "coupon_code": quote.coupon_code,
            },
        }
        logger.info(
            "Creating Razorpay order amount=%s currency=%s key=...%s",
            quote.amount,
            quote.currency,
            self.key_id[-6:],
        )

        try:
            response = self.session.post(
                f"{self.api_base}/orders",
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise self._error(f"Razorpay order request failed: {exc}")

        if not response.ok:
            raise self._error(
                f"Failed to create Razorpay order: {response.text}",
                provider_status=response.status_code,
            )

        data = response.json()
        if not data.get("id"):
            raise self._error("Razorpay response did not include an order id")
        return ProviderOrder(order_id=data["id"], raw=data)

    def client_directives(self, provider_order: ProviderOrder) -> Dict[str, Any]:
        return {"orderId": provider_order.order_id, "keyId": self.key_id}

    def verify_callback(self, body: bytes, headers: Mapping[str, str]) -> None:
        if not self.webhook_secret:
            logger.warning("RAZORPAY_WEBHOOK_SECRET not set, accepting unsigned Razorpay event")
            return
        signature = headers.get("X-Razorpay-Signature") or ""
        expected = compute_signature(body, self.webhook_secret)
        if not signature or not hmac.compare_digest(expected, signature):
            raise WebhookSignatureError(gateway=self.gateway)

    def event_id(self, payload: Dict[str, Any], headers: Mapping[str, str]) -> Optional[str]:
        return headers.get("X-Razorpay-Event-Id") or payload.get("id")

    def extract_confirmation(
        self, payload: Dict[str, Any], headers: Mapping[str, str]
    ) -> Optional[Confirmation]:
        event_type = payload.get("event")
        outcome = EVENT_OUTCOMES.get(event_type)
        if outcome is None:
            return None

        entities = payload.get("payload") or {}
        payment = (entities.get("payment") or {}).get("entity") or {}
        order = (entities.get("order") or {}).get("entity") or {}

        order_id = payment.get("order_id") or order.get("id")
        if not order_id:
            return None

        return Confirmation(
            order_id=order_id,
            outcome=outcome,
            payment_id=payment.get("id"),
            amount=payment.get("amount", order.get("amount")),
            currency=payment.get("currency") or order.get("currency"),
            event_id=self.event_id(payload, headers),
            event_type=event_type,
        )
