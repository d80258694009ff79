"""
Reconcile Order Management Command

Manual fix from the shell for orders whose webhook never arrived. Goes
through the reconciliation engine, so the enrollment is projected and the
e-mails are sent exactly as if the webhook had been delivered.

Usage:
    python manage.py reconcile_order <order_id> --email buyer@example.com
    python manage.py reconcile_order <order_id> --payment-id pay_123 [--gateway razorpay]

Author: Builder's Program Development Team
Version: 1.0.0
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from core.payments.exceptions import PaymentError
from core.payments.models import Order
from core.payments.reconciliation import build_engine
from core.payments.tracing import StepTrace

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Mark a pending order paid (manual fix) and project the enrollment."

    def add_arguments(self, parser):
        parser.add_argument("order_id", help="Provider order id")
        parser.add_argument("--email", dest="user_email", help="Buyer e-mail (manual fix)")
        parser.add_argument("--payment-id", dest="payment_id", help="Provider payment id (manual confirm)")
        parser.add_argument(
            "--gateway",
            choices=Order.Gateway.values,
            default=Order.Gateway.RAZORPAY,
            help="Gateway for --payment-id confirmations (default: razorpay)",
        )

    def handle(self, *args, **options):
        order_id = options["order_id"]
        user_email = options.get("user_email")
        payment_id = options.get("payment_id")

        if not user_email and not payment_id:
            raise CommandError("Pass --email or --payment-id")

        trace = StepTrace("RECONCILE-COMMAND")
        try:
            if user_email:
                result = build_engine(trace=trace).manual_fix(user_email, order_id)
            else:
                engine = build_engine(options["gateway"], trace=trace)
                result = engine.manual_confirm(order_id, payment_id)
        except PaymentError as exc:
            raise CommandError(exc.message)

        order = result.order
        if result.changed:
            self.stdout.write(
                self.style.SUCCESS(f"Order {order.gateway}:{order.order_id} marked paid.")
            )
        else:
            self.stdout.write(f"Order {order.gateway}:{order.order_id} already {order.status}.")
