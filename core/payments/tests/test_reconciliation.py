"""
Reconciliation engine: the pending → paid/failed transition shared by
webhooks, return callbacks, wallet capture and manual fixes.
"""

import json
from datetime import timedelta
from unittest import mock

from django.test import TestCase
from django.utils import timezone

from academy.tests.helpers import create_course, create_user
from core.payments.exceptions import (
    GatewayError,
    NotFound,
    OrderStateError,
    ValidationError,
    WebhookSignatureError,
)
from core.payments.gateways import (
    AssumedPending,
    Confirmation,
    Confirmed,
    RazorpayOrdersAdapter,
    StripeCheckoutAdapter,
)
from core.payments.models import Order, WebhookEvent
from core.payments.reconciliation import ReconciliationEngine

from .helpers import pending_order, razorpay_event, razorpay_signature, stripe_event


def razorpay_adapter(**kwargs):
    values = dict(key_id="rzp_test_1", key_secret="secret", webhook_secret="whsec", session=mock.Mock())
    values.update(kwargs)
    return RazorpayOrdersAdapter(**values)


def signed(payload, secret="whsec", event_id=None):
    body = json.dumps(payload).encode()
    headers = {"X-Razorpay-Signature": razorpay_signature(body, secret)}
    if event_id:
        headers["X-Razorpay-Event-Id"] = event_id
    return body, headers


class TransitionTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.course = create_course()
        cls.user = create_user()

    def setUp(self):
        self.projector = mock.Mock()
        self.engine = ReconciliationEngine(adapter=razorpay_adapter(), projector=self.projector)
        self.order = pending_order(self.user, course=self.course)

    def test_mark_paid_runs_side_effects_once(self):
        first = self.engine.mark_paid("order_1", payment_id="pay_1")
        second = self.engine.mark_paid("order_1", payment_id="pay_2")

        self.assertTrue(first.changed)
        self.assertFalse(second.changed)
        self.assertEqual(second.status, Order.Status.PAID)
        self.projector.on_paid.assert_called_once()

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_id, "pay_1")
        self.assertIsNotNone(self.order.paid_at)

    def test_exactly_one_winner_across_triggers(self):
        other = ReconciliationEngine(adapter=razorpay_adapter(), projector=self.projector)
        results = [
            self.engine.mark_paid("order_1", payment_id="pay_1"),
            other.mark_paid("order_1", payment_id="pay_1"),
            other.manual_fix(self.user.email, "order_1"),
        ]
        self.assertEqual([r.changed for r in results], [True, False, False])
        self.assertEqual(self.projector.on_paid.call_count, 1)

    def test_loser_with_stale_pending_read_does_not_reproject(self):
        webhook = ReconciliationEngine(adapter=razorpay_adapter(), projector=self.projector)
        real_transition = Order.objects.transition
        results = []
        interleaved = []

        def webhook_lands_first(*args, **kwargs):
            # Both triggers have seen the order as pending; the webhook writes first.
            if not interleaved:
                interleaved.append(True)
                results.append(webhook.mark_paid("order_1", payment_id="pay_webhook"))
            return real_transition(*args, **kwargs)

        with mock.patch.object(Order.objects, "transition", side_effect=webhook_lands_first):
            results.append(self.engine.manual_fix(self.user.email, "order_1"))

        self.assertEqual([r.changed for r in results], [True, False])
        self.assertEqual(self.projector.on_paid.call_count, 1)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PAID)
        self.assertEqual(self.order.payment_id, "pay_webhook")

    def test_paid_at_is_kept_on_replay(self):
        self.engine.mark_paid("order_1")
        paid_at = Order.objects.get(pk=self.order.pk).paid_at

        later = ReconciliationEngine(
            adapter=razorpay_adapter(),
            projector=self.projector,
            clock=lambda: timezone.now() + timedelta(hours=1),
        )
        later.mark_paid("order_1")
        self.assertEqual(Order.objects.get(pk=self.order.pk).paid_at, paid_at)

    def test_failed_then_paid_is_a_logged_noop(self):
        self.engine.mark_failed("order_1")
        with self.assertLogs("core.payments.trace", level="WARNING"):
            result = self.engine.mark_paid("order_1")
        self.assertFalse(result.changed)
        self.assertEqual(result.status, Order.Status.FAILED)
        self.projector.on_paid.assert_not_called()

    def test_failed_then_paid_strict_conflict(self):
        self.engine.mark_failed("order_1")
        with self.assertRaises(OrderStateError) as ctx:
            self.engine.mark_paid("order_1", strict=True)
        self.assertEqual(ctx.exception.status_code, 409)

    def test_paid_then_failed_keeps_paid(self):
        self.engine.mark_paid("order_1")
        result = self.engine.mark_failed("order_1")
        self.assertEqual(result.status, Order.Status.PAID)

    def test_unknown_order(self):
        with self.assertRaises(NotFound):
            self.engine.mark_paid("order_missing")

    def test_same_order_id_on_other_gateway_untouched(self):
        pending_order(self.user, gateway=Order.Gateway.STRIPE, order_id="order_1", currency="USD", amount=19900)
        self.engine.mark_paid("order_1")
        self.assertEqual(
            Order.objects.get(gateway=Order.Gateway.STRIPE, order_id="order_1").status,
            Order.Status.PENDING,
        )

    def test_apply_confirmation(self):
        result = self.engine.apply_confirmation(
            Confirmation(order_id="order_1", outcome="failed")
        )
        self.assertTrue(result.changed)
        self.assertEqual(result.status, Order.Status.FAILED)

    def test_manual_paths_need_adapter_or_gateway(self):
        engine = ReconciliationEngine(projector=self.projector)
        with self.assertRaises(ValidationError):
            engine.mark_paid("order_1")


class WebhookTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.course = create_course()
        cls.user = create_user()

    def setUp(self):
        self.projector = mock.Mock()
        self.engine = ReconciliationEngine(adapter=razorpay_adapter(), projector=self.projector)

    def test_captured_event_marks_paid(self):
        pending_order(self.user, course=self.course)
        body, headers = signed(razorpay_event(), event_id="evt_rzp_1")

        self.assertEqual(self.engine.handle_webhook(body, headers), {"received": True})

        order = Order.objects.get(order_id="order_1")
        self.assertEqual(order.status, Order.Status.PAID)
        self.assertEqual(order.payment_id, "pay_1")
        self.projector.on_paid.assert_called_once()
        self.assertTrue(WebhookEvent.objects.filter(gateway="razorpay", event_id="evt_rzp_1").exists())

    def test_bad_signature_rejected_without_writes(self):
        pending_order(self.user)
        body, headers = signed(razorpay_event(), secret="wrong")
        with self.assertRaises(WebhookSignatureError):
            self.engine.handle_webhook(body, headers)
        self.assertEqual(Order.objects.get(order_id="order_1").status, Order.Status.PENDING)
        self.assertFalse(WebhookEvent.objects.exists())

    def test_unknown_order_acknowledged_without_writes(self):
        body, headers = signed(razorpay_event(order_id="order_unknown"), event_id="evt_rzp_2")
        with self.assertLogs("core.payments.trace", level="WARNING"):
            self.assertEqual(self.engine.handle_webhook(body, headers), {"received": True})
        self.assertFalse(Order.objects.exists())
        self.assertFalse(WebhookEvent.objects.exists())

    def test_duplicate_event_skipped(self):
        pending_order(self.user)
        body, headers = signed(razorpay_event(), event_id="evt_rzp_1")
        self.engine.handle_webhook(body, headers)
        self.engine.handle_webhook(body, headers)

        self.projector.on_paid.assert_called_once()
        self.assertEqual(WebhookEvent.objects.count(), 1)

    def test_redelivery_without_event_id_is_idempotent(self):
        pending_order(self.user)
        body, headers = signed(razorpay_event())
        self.engine.handle_webhook(body, headers)
        self.engine.handle_webhook(body, headers)
        self.projector.on_paid.assert_called_once()

    def test_failed_payment(self):
        pending_order(self.user)
        body, headers = signed(razorpay_event("payment.failed"))
        self.engine.handle_webhook(body, headers)
        self.assertEqual(Order.objects.get(order_id="order_1").status, Order.Status.FAILED)
        self.projector.on_paid.assert_not_called()

    def test_amount_mismatch_is_logged_and_applied(self):
        pending_order(self.user, amount=649900)
        body, headers = signed(razorpay_event(amount=100))
        with self.assertLogs("core.payments.trace", level="WARNING") as logs:
            self.engine.handle_webhook(body, headers)
        self.assertTrue(any("amount differs" in line for line in logs.output))
        self.assertEqual(Order.objects.get(order_id="order_1").status, Order.Status.PAID)

    def test_ignored_event_type(self):
        pending_order(self.user)
        body, headers = signed({"event": "refund.created", "payload": {}})
        self.assertEqual(self.engine.handle_webhook(body, headers), {"received": True})
        self.assertEqual(Order.objects.get(order_id="order_1").status, Order.Status.PENDING)

    def test_invalid_json(self):
        body = b"not json"
        headers = {"X-Razorpay-Signature": razorpay_signature(body, "whsec")}
        with self.assertRaises(ValidationError):
            self.engine.handle_webhook(body, headers)

    def test_stripe_unpaid_completion_waits_for_async_event(self):
        pending_order(self.user, gateway=Order.Gateway.STRIPE, order_id="cs_test_1", amount=19900, currency="USD")
        engine = ReconciliationEngine(
            adapter=StripeCheckoutAdapter(api_key="sk_test", webhook_secret="", client=mock.Mock()),
            projector=self.projector,
        )
        unpaid = json.dumps(stripe_event(payment_status="unpaid")).encode()
        with self.assertLogs("core.payments.gateways.stripe_checkout", level="WARNING"):
            engine.handle_webhook(unpaid, {})
        self.assertEqual(Order.objects.get(order_id="cs_test_1").status, Order.Status.PENDING)

        succeeded = json.dumps(
            stripe_event("checkout.session.async_payment_succeeded", event_id="evt_2")
        ).encode()
        with self.assertLogs("core.payments.gateways.stripe_checkout", level="WARNING"):
            engine.handle_webhook(succeeded, {})
        self.assertEqual(Order.objects.get(order_id="cs_test_1").status, Order.Status.PAID)


class ReturnAndCaptureTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = create_user()

    def setUp(self):
        self.projector = mock.Mock()
        self.adapter = mock.Mock()
        self.adapter.gateway = "paypal"
        self.engine = ReconciliationEngine(adapter=self.adapter, projector=self.projector)

    def paypal_order(self, order_id="PAYPAL-1"):
        return pending_order(
            self.user, gateway=Order.Gateway.PAYPAL, order_id=order_id, amount=19900, currency="USD"
        )

    def test_generic_return_is_pending(self):
        outcome = ReconciliationEngine(projector=self.projector).handle_return(None)
        self.assertIsInstance(outcome, AssumedPending)
        self.assertEqual(outcome.to_response()["outcome"], "pending")

    def test_unknown_order_is_pending(self):
        outcome = self.engine.handle_return("PAYPAL-UNKNOWN")
        self.assertIsInstance(outcome, AssumedPending)
        self.adapter.confirm_return.assert_not_called()

    def test_return_captures_and_confirms(self):
        self.paypal_order()
        self.adapter.confirm_return.return_value = Confirmation(
            order_id="PAYPAL-1", outcome="paid", payment_id="CAPTURE-1"
        )
        outcome = self.engine.handle_return("PAYPAL-1")

        self.assertEqual(outcome, Confirmed(gateway="paypal", order_id="PAYPAL-1"))
        self.assertEqual(Order.objects.get(order_id="PAYPAL-1").payment_id, "CAPTURE-1")
        self.projector.on_paid.assert_called_once()

    def test_webhook_landing_during_return_capture_projects_once(self):
        self.paypal_order()
        webhook = ReconciliationEngine(adapter=self.adapter, projector=self.projector)
        webhook_results = []

        def capture_while_webhook_lands(order_id):
            webhook_results.append(webhook.mark_paid(order_id, payment_id="CAPTURE-1"))
            return Confirmation(order_id=order_id, outcome="paid", payment_id="CAPTURE-1")

        self.adapter.confirm_return.side_effect = capture_while_webhook_lands
        outcome = self.engine.handle_return("PAYPAL-1")

        self.assertEqual(outcome, Confirmed(gateway="paypal", order_id="PAYPAL-1"))
        self.assertTrue(webhook_results[0].changed)
        self.assertEqual(self.projector.on_paid.call_count, 1)

    def test_return_after_webhook_does_not_capture_again(self):
        order = self.paypal_order()
        Order.objects.transition(order.gateway, order.order_id, Order.Status.PAID)
        outcome = self.engine.handle_return("PAYPAL-1")
        self.assertIsInstance(outcome, Confirmed)
        self.adapter.confirm_return.assert_not_called()

    def test_provider_failure_on_return_is_pending(self):
        self.paypal_order()
        self.adapter.confirm_return.side_effect = GatewayError("timeout", gateway="paypal")
        with self.assertLogs("core.payments.trace", level="ERROR"):
            outcome = self.engine.handle_return("PAYPAL-1")
        self.assertEqual(outcome.to_response()["status"], Order.Status.PENDING)
        self.assertEqual(outcome.to_response()["outcome"], "pending")

    def test_unsettled_capture_is_pending(self):
        self.paypal_order()
        self.adapter.confirm_return.return_value = None
        self.assertIsInstance(self.engine.handle_return("PAYPAL-1"), AssumedPending)

    def test_capture_wallet_order(self):
        self.paypal_order()
        self.adapter.confirm_return.return_value = Confirmation(
            order_id="PAYPAL-1", outcome="paid", payment_id="CAPTURE-1"
        )
        result = self.engine.capture_wallet_order("PAYPAL-1")
        self.assertEqual(
            result,
            {"success": True, "orderId": "PAYPAL-1", "status": "paid", "captureId": "CAPTURE-1"},
        )

    def test_capture_unknown_order(self):
        with self.assertRaises(NotFound):
            self.engine.capture_wallet_order("PAYPAL-UNKNOWN")
        self.adapter.confirm_return.assert_not_called()


class ManualPathTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = create_user()

    def setUp(self):
        self.projector = mock.Mock()
        self.engine = ReconciliationEngine(projector=self.projector)

    def test_manual_fix_marks_paid(self):
        pending_order(self.user, gateway=Order.Gateway.STRIPE, order_id="cs_1", currency="USD", amount=19900)
        result = self.engine.manual_fix("STUDENT@example.com", "cs_1")

        self.assertTrue(result.changed)
        self.assertEqual(result.status, Order.Status.PAID)
        self.projector.on_paid.assert_called_once_with(result.order, manual=True)

    def test_manual_fix_on_paid_order_keeps_paid_at(self):
        order = pending_order(self.user)
        self.engine.mark_paid("order_1", gateway=order.gateway)
        paid_at = Order.objects.get(pk=order.pk).paid_at

        result = self.engine.manual_fix(self.user.email, "order_1")
        self.assertFalse(result.changed)
        self.assertEqual(Order.objects.get(pk=order.pk).paid_at, paid_at)
        self.assertEqual(self.projector.on_paid.call_count, 1)

    def test_manual_fix_on_failed_order_conflicts(self):
        order = pending_order(self.user)
        self.engine.mark_failed("order_1", gateway=order.gateway)
        with self.assertRaises(OrderStateError):
            self.engine.manual_fix(self.user.email, "order_1")

    def test_manual_fix_wrong_email(self):
        pending_order(self.user)
        with self.assertRaises(NotFound):
            self.engine.manual_fix("someone@example.com", "order_1")

    def test_manual_confirm_defaults(self):
        pending_order(self.user)
        result = self.engine.manual_confirm("order_1")
        self.assertEqual(result.order.payment_id, "manual_confirm")
        self.assertEqual(result.order.gateway, Order.Gateway.RAZORPAY)

    def test_manual_confirm_with_payment_id(self):
        pending_order(self.user)
        result = self.engine.manual_confirm("order_1", payment_id="pay_looked_up")
        self.assertEqual(result.order.payment_id, "pay_looked_up")

    def test_manual_confirm_unknown(self):
        with self.assertRaises(NotFound) as ctx:
            self.engine.manual_confirm("order_missing")
        self.assertEqual(ctx.exception.message, "No order found with this ID")
