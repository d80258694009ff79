"""
Reconciliation Engine

Every trigger that can tell us an order was paid (or failed) ends up in
`ReconciliationEngine._apply`:

- Webhook        : verify → parse → skip recorded event ids → extract the
                   confirmation → look up (gateway, order_id) → transition
- Return callback: capture where the gateway needs it (PayPal), then read
                   the order; answers `Confirmed` or `AssumedPending`
- Capture        : trusted server-side PayPal capture
- Manual fix     : trusted operator action by (user_email, order_id) or
                   (order_id, payment_id)

`_apply` issues one conditional UPDATE guarded on `status = 'pending'`. The
caller that changes the row runs the post-payment side effects (enrollment
projection, e-mails); every other caller sees the order already settled and
does nothing. This is the only place an order status changes.

Settled orders:
- already `paid` and asked to become paid → success, nothing written
- already `failed` and asked to become paid → OrderStateError on manual
  paths, logged no-op on webhooks

Author: Builder's Program Development Team
Version: 1.0.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Union

from django.db import IntegrityError, transaction
from django.utils import timezone

from academy.enrollments.projector import EnrollmentProjector

from .exceptions import GatewayError, NotFound, OrderStateError, ValidationError
from .gateways import AssumedPending, Confirmation, Confirmed, GatewayAdapter, build_adapter
from .models import Order, WebhookEvent
from .tracing import StepTrace

logger = logging.getLogger(__name__)

ReturnOutcome = Union[Confirmed, AssumedPending]

MANUAL_CONFIRM_GATEWAY = Order.Gateway.RAZORPAY
MANUAL_CONFIRM_PAYMENT_ID = "manual_confirm"


@dataclass(frozen=True)
class TransitionResult:
    order: Order
    changed: bool

    @property
    def status(self) -> str:
        return self.order.status


class ReconciliationEngine:
    """
    Settles orders for one gateway adapter.

    Args:
        adapter: Gateway adapter; may be None for manual paths, which take the
            gateway from the stored order
        projector: Enrollment projector run after a winning `pending → paid`
        trace: Step tracer of the current request
    """

    def __init__(
        self,
        adapter: Optional[GatewayAdapter] = None,
        projector: Optional[EnrollmentProjector] = None,
        trace: Optional[StepTrace] = None,
        clock: Callable = timezone.now,
    ) -> None:
        self.adapter = adapter
        self.projector = projector or EnrollmentProjector()
        self.trace = trace or StepTrace("RECONCILE")
        self.clock = clock

    @property
    def gateway(self) -> Optional[str]:
        return self.adapter.gateway if self.adapter else None

    def _require_adapter(self) -> GatewayAdapter:
        if self.adapter is None:
            raise ValidationError("No gateway adapter configured for this operation")
        return self.adapter

    # ---------- transitions ----------

    def _apply(
        self,
        gateway: str,
        order_id: str,
        status: str,
        payment_id: Optional[str] = None,
        strict: bool = False,
        manual: bool = False,
    ) -> TransitionResult:
        won = Order.objects.transition(gateway, order_id, status, payment_id, now=self.clock())
        order = Order.objects.for_gateway(gateway, order_id).select_related("course").first()
        if order is None:
            raise NotFound(f"Order not found: {gateway}:{order_id}")

        if won:
            self.trace.step(f"Order marked {status}", gateway=gateway, order_id=order_id, payment_id=payment_id)
            if status == Order.Status.PAID:
                self.projector.on_paid(order, manual=manual)
            return TransitionResult(order=order, changed=True)

        if order.status == status:
            self.trace.step(f"Order already {status}, nothing to do", gateway=gateway, order_id=order_id)
            return TransitionResult(order=order, changed=False)

        message = f"Order {gateway}:{order_id} is {order.status}, cannot mark {status}"
        if strict:
            self.trace.warning("Order state conflict", gateway=gateway, order_id=order_id, current=order.status, requested=status)
            raise OrderStateError(message, details={"gateway": gateway, "order_id": order_id})
        self.trace.warning("Ignoring transition on settled order", gateway=gateway, order_id=order_id, current=order.status, requested=status)
        return TransitionResult(order=order, changed=False)

    def mark_paid(
        self,
        order_id: str,
        payment_id: Optional[str] = None,
        gateway: Optional[str] = None,
        strict: bool = False,
        manual: bool = False,
    ) -> TransitionResult:
        return self._apply(
            gateway or self._require_adapter().gateway,
            order_id,
            Order.Status.PAID,
            payment_id=payment_id,
            strict=strict,
            manual=manual,
        )

    def mark_failed(
        self,
        order_id: str,
        gateway: Optional[str] = None,
        strict: bool = False,
    ) -> TransitionResult:
        return self._apply(
            gateway or self._require_adapter().gateway,
            order_id,
            Order.Status.FAILED,
            strict=strict,
        )

    def apply_confirmation(self, confirmation: Confirmation, strict: bool = False) -> TransitionResult:
        if confirmation.is_paid:
            return self.mark_paid(confirmation.order_id, confirmation.payment_id, strict=strict)
        return self.mark_failed(confirmation.order_id, strict=strict)

    # ---------- webhook ----------

    def _record_event(self, event_id: Optional[str], event_type: str) -> None:
        if not event_id:
            return
        try:
            with transaction.atomic():
                WebhookEvent.objects.get_or_create(
                    gateway=self.gateway, event_id=event_id, defaults={"event_type": event_type}
                )
        except IntegrityError:
            logger.info("Webhook event %s:%s recorded concurrently", self.gateway, event_id)

    def handle_webhook(self, body: bytes, headers: Mapping[str, str]) -> Dict[str, Any]:
        """
        Process one provider webhook.

        Returns:
            `{"received": True}` whenever the event was accepted, including
            unknown orders and ignored event types

        Raises:
            WebhookSignatureError: Signature mismatch
            ValidationError: Body is not a JSON object
        """
        adapter = self._require_adapter()
        self.trace.step("Webhook received", gateway=adapter.gateway, body_length=len(body))

        adapter.verify_callback(body, headers)
        self.trace.step("Signature verified")

        payload = adapter.parse(body)
        event_id = adapter.event_id(payload, headers)
        event_type = adapter.event_type(payload)
        self.trace.step("Event parsed", event=event_type, event_id=event_id)

        if event_id and WebhookEvent.objects.filter(gateway=adapter.gateway, event_id=event_id).exists():
            self.trace.step("Duplicate event, already processed", event_id=event_id)
            return {"received": True}

        confirmation = adapter.extract_confirmation(payload, headers)
        if confirmation is None:
            self.trace.step("Event ignored", event=event_type)
            return {"received": True}

        order = Order.objects.for_gateway(adapter.gateway, confirmation.order_id).first()
        if order is None:
            self.trace.warning("No order found to update", order_id=confirmation.order_id, event=event_type)
            return {"received": True}

        if confirmation.amount is not None and confirmation.amount != order.amount:
            self.trace.warning(
                "Gateway amount differs from stored order amount",
                order_id=order.order_id,
                stored_amount=order.amount,
                gateway_amount=confirmation.amount,
            )
        if confirmation.currency and confirmation.currency.upper() != order.currency.upper():
            self.trace.warning(
                "Gateway currency differs from stored order currency",
                order_id=order.order_id,
                stored_currency=order.currency,
                gateway_currency=confirmation.currency,
            )

        self.trace.step(
            "Confirmation extracted",
            order_id=confirmation.order_id,
            outcome=confirmation.outcome,
            payment_id=confirmation.payment_id,
            amount=confirmation.amount,
        )
        self.apply_confirmation(confirmation, strict=False)
        self._record_event(event_id, event_type)
        return {"received": True}

    # ---------- return callback / capture ----------

    def handle_return(self, order_id: Optional[str]) -> ReturnOutcome:
        """
        Resolve a browser return from the provider.

        Never raises for provider trouble: anything that cannot be verified is
        reported as AssumedPending and left to the webhook.
        """
        gateway = self.gateway
        if not gateway or not order_id:
            self.trace.step("Generic return, nothing to verify", gateway=gateway)
            return AssumedPending(gateway=gateway, order_id=order_id)

        order = Order.objects.for_gateway(gateway, order_id).first()
        if order is None:
            self.trace.warning("Return for unknown order", gateway=gateway, order_id=order_id)
            return AssumedPending(gateway=gateway, order_id=order_id)

        if order.status == Order.Status.PENDING:
            try:
                confirmation = self.adapter.confirm_return(order_id)
            except GatewayError as exc:
                self.trace.error("Return confirmation failed", gateway=gateway, order_id=order_id, error=exc.message)
                confirmation = None
            if confirmation is not None:
                order = self.apply_confirmation(confirmation).order

        if order.status == Order.Status.PAID:
            return Confirmed(gateway=gateway, order_id=order_id)
        return AssumedPending(gateway=gateway, order_id=order_id, status=order.status)

    def capture_wallet_order(self, order_id: str) -> Dict[str, Any]:
        """
        Capture an approved wallet order and settle it.

        Raises:
            NotFound: No stored order with this id
            GatewayError: Capture call failed
        """
        adapter = self._require_adapter()
        order = Order.objects.for_gateway(adapter.gateway, order_id).first()
        if order is None:
            raise NotFound(f"Order not found: {order_id}")

        self.trace.step("Order capture requested", order_id=order_id, status=order.status)
        if order.status == Order.Status.PENDING:
            confirmation = adapter.confirm_return(order_id)
            if confirmation is not None:
                order = self.apply_confirmation(confirmation, strict=True).order

        return {
            "success": order.status == Order.Status.PAID,
            "orderId": order.order_id,
            "status": order.status,
            "captureId": order.payment_id,
        }

    # ---------- manual paths ----------

    def manual_fix(self, user_email: str, order_id: str) -> TransitionResult:
        """Mark the order identified by (user_email, order_id) paid."""
        order = Order.objects.filter(order_id=order_id, user_email__iexact=user_email).first()
        if order is None:
            self.trace.warning("No order found to update", user_email=user_email, order_id=order_id)
            raise NotFound("Order not found")
        self.trace.step("Processing manual enrollment fix", gateway=order.gateway, order_id=order_id)
        return self.mark_paid(order_id, gateway=order.gateway, strict=True, manual=True)

    def manual_confirm(self, order_id: str, payment_id: Optional[str] = None) -> TransitionResult:
        """Mark a regional order paid with the payment id the operator looked up."""
        gateway = self.gateway or MANUAL_CONFIRM_GATEWAY
        if not Order.objects.for_gateway(gateway, order_id).exists():
            self.trace.warning("No order found to update", gateway=gateway, order_id=order_id)
            raise NotFound("No order found with this ID")
        self.trace.step("Confirming payment", gateway=gateway, order_id=order_id, payment_id=payment_id)
        return self.mark_paid(
            order_id,
            payment_id=payment_id or MANUAL_CONFIRM_PAYMENT_ID,
            gateway=gateway,
            strict=True,
            manual=True,
        )


def build_engine(
    gateway: Optional[str] = None,
    trace: Optional[StepTrace] = None,
    adapter: Optional[GatewayAdapter] = None,
    projector: Optional[EnrollmentProjector] = None,
) -> ReconciliationEngine:
    """Request-scoped engine factory used by the views and commands."""
    if adapter is None and gateway:
        adapter = build_adapter(gateway)
    return ReconciliationEngine(adapter=adapter, projector=projector, trace=trace)
