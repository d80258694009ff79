"""
PayPal Orders Adapter (international wallet gateway)
====================================================

PayPal orders are created with `intent=CAPTURE` and are NOT captured
automatically: after the buyer approves, the return callback (or the
capture endpoint) has to call `/v2/checkout/orders/{id}/capture`. Webhooks
arrive for the capture as well, so whichever path runs first wins the
`pending → paid` transition.

- Order id     : PayPal order id
- Directives   : {"approvalUrl": ..., "orderId": ...}
- Currencies   : USD; other quotes are re-priced in the `intl` region
- Verification : `/v1/notifications/verify-webhook-signature` with PAYPAL_WEBHOOK_ID

Handled events:
- `PAYMENT.CAPTURE.COMPLETED` → paid
- `CHECKOUT.ORDER.COMPLETED`  → paid
- `PAYMENT.CAPTURE.DENIED`    → failed

Authentication uses the OAuth 2.0 client-credentials flow. The access token
is cached in the Django cache until shortly before it expires.

Author: Builder's Program Development Team
Version: 1.0.0
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from threading import Lock
from typing import Any, Dict, Mapping, Optional

import requests
from django.conf import settings
from django.core.cache import cache

from ..exceptions import PayPalAccountRestricted, WebhookSignatureError
from .base import FAILED, PAID, CheckoutContext, Confirmation, GatewayAdapter, ProviderOrder

logger = logging.getLogger(__name__)

EVENT_OUTCOMES = {
    "PAYMENT.CAPTURE.COMPLETED": PAID,
    "CHECKOUT.ORDER.COMPLETED": PAID,
    "PAYMENT.CAPTURE.DENIED": FAILED,
}

CAPTURE_OUTCOMES = {
    "COMPLETED": PAID,
    "DECLINED": FAILED,
    "FAILED": FAILED,
}

SIGNATURE_HEADERS = {
    "auth_algo": "PAYPAL-AUTH-ALGO",
    "cert_url": "PAYPAL-CERT-URL",
    "transmission_id": "PAYPAL-TRANSMISSION-ID",
    "transmission_sig": "PAYPAL-TRANSMISSION-SIG",
    "transmission_time": "PAYPAL-TRANSMISSION-TIME",
}


def to_minor_units(value: Optional[str]) -> Optional[int]:
    """PayPal reports amounts as decimal strings ("199.00")."""
    if value in (None, ""):
        return None
    try:
        return int((Decimal(str(value)) * 100).to_integral_value())
    except InvalidOperation:
        return None


def to_major_string(amount: int) -> str:
    return f"{Decimal(amount) / 100:.2f}"


def _issues(data: Dict[str, Any]) -> set:
    return {d.get("issue") for d in data.get("details") or [] if isinstance(d, dict)}


class PayPalTokenManager:
    """
    Client-credentials token for the PayPal REST API, cached across requests.

    Attributes:
        CACHE_PREFIX (str): Prefix for cache keys
        TOKEN_BUFFER_SECONDS (int): Refresh this long before the token expires
    """

    CACHE_PREFIX = "paypal_token"
    TOKEN_BUFFER_SECONDS = 300

    _lock = Lock()

    def __init__(self, adapter: "PayPalOrdersAdapter") -> None:
        self.adapter = adapter

    @property
    def cache_key(self) -> str:
        return f"{self.CACHE_PREFIX}_{self.adapter.client_id}"

    def get_access_token(self, force_refresh: bool = False) -> str:
        with self._lock:
            if not force_refresh:
                cached_token = cache.get(self.cache_key)
                if cached_token:
                    logger.debug("Using cached PayPal access token")
                    return cached_token

            logger.info("Requesting new PayPal access token")
            token_data = self._request_token()
            access_token = token_data.get("access_token")
            if not access_token:
                raise self.adapter._error("No access_token in PayPal token response")

            expires_in = int(token_data.get("expires_in", 3600))
            cache_timeout = max(expires_in - self.TOKEN_BUFFER_SECONDS, 60)
            cache.set(self.cache_key, access_token, timeout=cache_timeout)
            logger.info(
                "Obtained PayPal access token (expires in %ss, cached for %ss)",
                expires_in,
                cache_timeout,
            )
            return access_token

    def _request_token(self) -> Dict[str, Any]:
        adapter = self.adapter
        try:
            response = adapter.session.post(
                f"{adapter.api_base}/v1/oauth2/token",
                data={"grant_type": "client_credentials"},
                auth=(adapter.client_id, adapter.client_secret),
                headers={"Accept": "application/json"},
                timeout=adapter.timeout,
            )
        except requests.RequestException as exc:
            raise adapter._error(f"PayPal token request failed: {exc}")
        if not response.ok:
            raise adapter._error(
                f"Failed to get PayPal access token: {response.status_code} {response.text}",
                provider_status=response.status_code,
            )
        return response.json()


class PayPalOrdersAdapter(GatewayAdapter):
    gateway = "paypal"
    supported_currencies = frozenset({"USD"})
    fallback_region = "intl"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        webhook_id: Optional[str] = None,
        api_base: Optional[str] = None,
        brand_name: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(timeout)
        self.client_id = client_id if client_id is not None else settings.PAYPAL_CLIENT_ID
        self.client_secret = (
            client_secret if client_secret is not None else settings.PAYPAL_CLIENT_SECRET
        )
        self.webhook_id = webhook_id if webhook_id is not None else settings.PAYPAL_WEBHOOK_ID
        self.api_base = (api_base or settings.PAYPAL_API_BASE).rstrip("/")
        self.brand_name = brand_name or settings.PAYPAL_BRAND_NAME
        self.session = session or requests.Session()
        self.tokens = PayPalTokenManager(self)

    # ---------- HTTP ----------

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        if not self.client_id or not self.client_secret:
            raise self._error("Server not configured for PayPal")
        headers = {
            "Authorization": f"Bearer {self.tokens.get_access_token()}",
            "Content-Type": "application/json",
        }
        try:
            return self.session.request(
                method,
                f"{self.api_base}{path}",
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise self._error(f"PayPal request {method} {path} failed: {exc}")

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    # ---------- order creation ----------

    def create_order(self, user, quote, context: CheckoutContext) -> ProviderOrder:
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "amount": {
                        "currency_code": quote.currency.upper(),
                        "value": to_major_string(quote.amount),
                    },
                    "description": context.product_name or "Course Enrollment",
                    "custom_id": str(user.pk),
                }
            ],
            "application_context": {
                "return_url": f"{context.frontend_url}/pay/success?gateway=paypal",
                "cancel_url": f"{context.frontend_url}/pay/cancel",
                "user_action": "PAY_NOW",
                "brand_name": self.brand_name,
            },
        }
        response = self._request("POST", "/v2/checkout/orders", json=body)

        if not response.ok:
            data = self._json(response)
            if (
                data.get("name") == "UNPROCESSABLE_ENTITY"
                and "PAYEE_ACCOUNT_RESTRICTED" in _issues(data)
            ):
                logger.error("PayPal account restricted (debug_id=%s)", data.get("debug_id"))
                raise PayPalAccountRestricted(debug_id=data.get("debug_id"))
            raise self._error(
                "PayPal order create failed",
                provider_status=response.status_code,
                body=response.text,
            )

        order = self._json(response)
        approval_url = next(
            (
                link.get("href")
                for link in order.get("links") or []
                if link.get("rel") in ("approve", "payer-action")
            ),
            None,
        )
        if not order.get("id") or not approval_url:
            raise self._error("No approval URL found in PayPal response")
        return ProviderOrder(order_id=order["id"], raw={"approval_url": approval_url})

    def client_directives(self, provider_order: ProviderOrder) -> Dict[str, Any]:
        return {
            "approvalUrl": provider_order.raw.get("approval_url"),
            "orderId": provider_order.order_id,
        }

    # ---------- capture ----------

    def get_order(self, order_id: str) -> Dict[str, Any]:
        response = self._request("GET", f"/v2/checkout/orders/{order_id}")
        if not response.ok:
            raise self._error(
                f"PayPal order lookup failed: {response.text}",
                provider_status=response.status_code,
            )
        return self._json(response)

    def _confirmation_from_order(self, order_id: str, data: Dict[str, Any]) -> Optional[Confirmation]:
        captures = []
        for unit in data.get("purchase_units") or []:
            captures.extend((unit.get("payments") or {}).get("captures") or [])
        capture = captures[0] if captures else {}

        if capture:
            outcome = CAPTURE_OUTCOMES.get(capture.get("status"))
        else:
            outcome = PAID if data.get("status") == "COMPLETED" else None
        if outcome is None:
            return None

        amount = capture.get("amount") or {}
        return Confirmation(
            order_id=order_id,
            outcome=outcome,
            payment_id=capture.get("id"),
            amount=to_minor_units(amount.get("value")),
            currency=amount.get("currency_code"),
        )

    def confirm_return(self, order_id: str) -> Optional[Confirmation]:
        """
        Capture an approved order.

        Returns:
            A paid/failed Confirmation, or None when PayPal has not settled the
            capture yet (e.g. PENDING).
        """
        response = self._request("POST", f"/v2/checkout/orders/{order_id}/capture")
        data = self._json(response)

        if not response.ok:
            if "ORDER_ALREADY_CAPTURED" in _issues(data):
                logger.info("PayPal order %s already captured, reading order", order_id)
                return self._confirmation_from_order(order_id, self.get_order(order_id))
            raise self._error(
                f"PayPal capture failed: {response.text}",
                provider_status=response.status_code,
            )

        logger.info("PayPal order %s captured (status=%s)", order_id, data.get("status"))
        return self._confirmation_from_order(order_id, data)

    # ---------- webhooks ----------

    def verify_callback(self, body: bytes, headers: Mapping[str, str]) -> None:
        if not self.webhook_id:
            logger.warning("PAYPAL_WEBHOOK_ID not set, accepting unverified PayPal event")
            return

        verification = {key: headers.get(name) for key, name in SIGNATURE_HEADERS.items()}
        if not all(verification.values()):
            raise WebhookSignatureError("Missing PayPal transmission headers", gateway=self.gateway)
        verification["webhook_id"] = self.webhook_id
        verification["webhook_event"] = self.parse(body)

        response = self._request(
            "POST", "/v1/notifications/verify-webhook-signature", json=verification
        )
        if not response.ok:
            raise self._error(
                f"PayPal webhook verification failed: {response.text}",
                provider_status=response.status_code,
            )
        if self._json(response).get("verification_status") != "SUCCESS":
            raise WebhookSignatureError(gateway=self.gateway)

    def extract_confirmation(
        self, payload: Dict[str, Any], headers: Mapping[str, str]
    ) -> Optional[Confirmation]:
        event_type = payload.get("event_type")
        outcome = EVENT_OUTCOMES.get(event_type)
        if outcome is None:
            return None

        resource = payload.get("resource") or {}
        if event_type.startswith("CHECKOUT.ORDER."):
            order_id = resource.get("id")
            confirmation = self._confirmation_from_order(order_id, resource) if order_id else None
            # The capture inside the order decides the outcome; pending captures wait for their own event.
            if confirmation is None:
                return None
            outcome = confirmation.outcome
            payment_id = confirmation.payment_id
            amount = confirmation.amount
            currency = confirmation.currency
        else:
            related = (resource.get("supplementary_data") or {}).get("related_ids") or {}
            order_id = related.get("order_id")
            payment_id = resource.get("id")
            money = resource.get("amount") or {}
            amount = to_minor_units(money.get("value"))
            currency = money.get("currency_code")

        if not order_id:
            return None

        return Confirmation(
            order_id=order_id,
            outcome=outcome,
            payment_id=payment_id,
            amount=amount,
            currency=currency,
            event_id=payload.get("id"),
            event_type=event_type,
        )
