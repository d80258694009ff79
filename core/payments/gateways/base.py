"""
Gateway Adapter Interface

Each payment provider is wrapped in a `GatewayAdapter` subclass exposing the
same operations, so order creation and reconciliation are written once and
parameterized by adapter:

    create_order        -> call the provider, return a ProviderOrder
    client_directives   -> response body the SPA needs to continue checkout
    verify_callback     -> check a webhook signature (raise on mismatch)
    extract_confirmation-> map a webhook payload to a Confirmation (or None)
    confirm_return      -> provider-side capture after a redirect, where the
                           provider does not capture automatically

Adapters talk to the provider only. They never touch the order store.

Author: Builder's Program Development Team
Version: 1.0.0
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional

from django.conf import settings

from ..exceptions import GatewayError, ValidationError

PAID = "paid"
FAILED = "failed"


@dataclass(frozen=True)
class CheckoutContext:
    """Request-derived values an adapter needs to build redirect URLs."""

    frontend_url: str
    product_name: str = ""

    @classmethod
    def from_settings(cls) -> "CheckoutContext":
        return cls(
            frontend_url=settings.FRONTEND_URL,
            product_name=settings.ENROLLMENT_PRODUCT_NAME,
        )


@dataclass(frozen=True)
class ProviderOrder:
    """An order the provider accepted. `raw` keeps the provider payload for directives."""

    order_id: str
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Confirmation:
    """
    Provider statement about an order.

    Attributes:
        order_id: Provider order id (Order.order_id)
        outcome: "paid" or "failed"
        payment_id: Provider payment/capture id, when known
        amount / currency: What the provider reports, for logging only
        event_id / event_type: Webhook identity, when from a webhook
    """

    order_id: str
    outcome: str
    payment_id: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    event_id: Optional[str] = None
    event_type: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.outcome == PAID


@dataclass(frozen=True)
class CreatedOrder:
    order_id: str
    gateway: str
    client_directives: Dict[str, Any]


# --- return outcomes ---


@dataclass(frozen=True)
class Confirmed:
    """The order was verified paid."""

    gateway: str
    order_id: str
    status: str = PAID

    def to_response(self) -> Dict[str, Any]:
        return {
            "outcome": "confirmed",
            "gateway": self.gateway,
            "orderId": self.order_id,
            "status": self.status,
        }


@dataclass(frozen=True)
class AssumedPending:
    """
    Nothing could be verified yet. The client shows "payment received,
    enrollment pending" and the webhook settles the order later.
    """

    gateway: Optional[str] = None
    order_id: Optional[str] = None
    status: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        return {
            "outcome": "pending",
            "gateway": self.gateway,
            "orderId": self.order_id,
            "status": self.status,
        }


class GatewayAdapter(ABC):
    """
    Base class for provider adapters.

    Attributes:
        gateway: Value stored in Order.gateway
        supported_currencies: Currencies the provider is configured for
        fallback_region: Region to re-price in when the quote currency is not
            supported, or None to reject such quotes
        timeout: Seconds before any provider HTTP call is abandoned
    """

    gateway: str = ""
    supported_currencies: FrozenSet[str] = frozenset()
    fallback_region: Optional[str] = None

    def __init__(self, timeout: Optional[float] = None) -> None:
        self.timeout = timeout if timeout is not None else settings.PAYMENT_GATEWAY_TIMEOUT

    def supports(self, currency: str) -> bool:
        return currency.upper() in self.supported_currencies

    @abstractmethod
    def create_order(self, user, quote, context: CheckoutContext) -> ProviderOrder:
        """Create the provider order. Raises GatewayError on any provider failure."""

    @abstractmethod
    def client_directives(self, provider_order: ProviderOrder) -> Dict[str, Any]:
        """Body returned to the client after the order is stored."""

    @abstractmethod
    def verify_callback(self, body: bytes, headers: Mapping[str, str]) -> None:
        """Raise WebhookSignatureError if the webhook is not authentic."""

    @abstractmethod
    def extract_confirmation(
        self, payload: Dict[str, Any], headers: Mapping[str, str]
    ) -> Optional[Confirmation]:
        """Map a webhook payload to a Confirmation, or None for events we ignore."""

    def confirm_return(self, order_id: str) -> Optional[Confirmation]:
        """Providers that capture automatically have nothing to do on return."""
        return None

    def parse(self, body: bytes) -> Dict[str, Any]:
        try:
            payload = json.loads(body)
        except ValueError:
            raise ValidationError("Invalid JSON payload")
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        return payload

    def event_id(self, payload: Dict[str, Any], headers: Mapping[str, str]) -> Optional[str]:
        """Provider event id used to skip redelivered webhooks."""
        return payload.get("id")

    def event_type(self, payload: Dict[str, Any]) -> str:
        return payload.get("type") or payload.get("event") or payload.get("event_type") or ""

    def _error(self, message: str, provider_status: Optional[int] = None, **details) -> GatewayError:
        return GatewayError(
            message, gateway=self.gateway, provider_status=provider_status, details=details
        )
