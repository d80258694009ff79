"""
Sync Enrollments Management Command

Re-projects enrollments from paid orders. Used after a projector failure
(the order is paid but the enrollment write failed) and to claim guest
orders: with --claim, orders stored with an e-mail only are linked to the
account with that e-mail before projecting.

No e-mails are sent; this only repairs enrollment rows.

Usage:
    python manage.py sync_enrollments
    python manage.py sync_enrollments --claim
    python manage.py sync_enrollments --email buyer@example.com --claim
    python manage.py sync_enrollments --dry-run

Author: Builder's Program Development Team
Version: 1.0.0
"""

import logging

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from academy.enrollments.models import Enrollment
from academy.enrollments.projector import EnrollmentProjector
from core.payments.models import Order
from core.payments.services import claim_orders_for_user

User = get_user_model()

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Project enrollments for paid orders, optionally claiming guest orders by e-mail."

    def add_arguments(self, parser):
        parser.add_argument("--email", help="Only handle orders of this e-mail address")
        parser.add_argument(
            "--claim",
            action="store_true",
            help="Link orders without a user to the account with the same e-mail",
        )
        parser.add_argument("--dry-run", action="store_true", help="Report without writing")

    def handle(self, *args, **options):
        email = options.get("email")
        dry_run = options["dry_run"]
        projector = EnrollmentProjector()

        if options["claim"]:
            self._claim(email, projector, dry_run)

        paid = Order.objects.filter(status=Order.Status.PAID, user__isnull=False)
        if email:
            paid = paid.filter(user_email__iexact=email)

        missing = paid.exclude(
            user__enrollment__payment_status=Enrollment.PaymentStatus.COMPLETED
        ).order_by("paid_at")

        projected = 0
        for order in missing:
            self.stdout.write(f"  - {order.gateway}:{order.order_id} ({order.user_email})")
            if dry_run:
                continue
            if projector.project(order) is not None:
                projected += 1

        unclaimed = Order.objects.filter(status=Order.Status.PAID, user__isnull=True)
        if email:
            unclaimed = unclaimed.filter(user_email__iexact=email)
        if unclaimed.exists():
            self.stdout.write(
                self.style.WARNING(f"{unclaimed.count()} paid order(s) have no user (run with --claim).")
            )

        if dry_run:
            self.stdout.write(f"Dry run: {missing.count()} enrollment(s) would be projected.")
            return
        self.stdout.write(self.style.SUCCESS(f"{projected} enrollment(s) projected."))

    def _claim(self, email, projector, dry_run):
        emails = Order.objects.filter(user__isnull=True).values_list("user_email", flat=True)
        if email:
            emails = emails.filter(user_email__iexact=email)

        claimed = 0
        for address in sorted({e.lower() for e in emails}):
            user = User.objects.filter(email__iexact=address).first()
            if user is None:
                continue
            if dry_run:
                self.stdout.write(f"  would claim orders of {address} for user {user.pk}")
                continue
            claimed += claim_orders_for_user(user, projector=projector)
        if not dry_run:
            self.stdout.write(self.style.SUCCESS(f"{claimed} guest order(s) claimed."))
