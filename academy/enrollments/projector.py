"""
Enrollment Projector

Derives the Enrollment row from a paid order. It runs once per order, right
after the caller that won the `pending → paid` transition, and also when
paid orders are re-projected (`sync_enrollments`).

Failures here never undo the payment:
- an order without a user cannot be projected and is logged as a gap until
  it is claimed (`sync_enrollments --claim`)
- a failed upsert is logged, the order stays `paid`
- e-mail failures are logged by the mailer

Author: Builder's Program Development Team
Version: 1.0.0
"""

import logging
from typing import Optional

from django.conf import settings
from django.db import DatabaseError, transaction

from .models import Enrollment
from .notifications import EnrollmentMailer

logger = logging.getLogger(__name__)


class EnrollmentProjector:
    def __init__(self, mailer: Optional[EnrollmentMailer] = None) -> None:
        self.mailer = mailer or EnrollmentMailer()

    def project(self, order) -> Optional[Enrollment]:
        """
        Upsert the enrollment of `order.user` as completed.

        Returns:
            The enrollment, or None when the order has no user or the write failed
        """
        if order.user_id is None:
            logger.warning(
                "Paid order %s:%s (%s) has no user, enrollment not projected",
                order.gateway,
                order.order_id,
                order.user_email,
            )
            return None

        defaults = {
            "cohort_id": settings.ENROLLMENT_DEFAULT_COHORT,
            "payment_status": Enrollment.PaymentStatus.COMPLETED,
        }
        if order.course_id:
            defaults["course_id"] = order.course_id

        try:
            with transaction.atomic():
                enrollment, created = Enrollment.objects.update_or_create(
                    user_id=order.user_id, defaults=defaults
                )
        except DatabaseError as exc:
            logger.error(
                "Enrollment update error for user %s (order %s:%s): %s",
                order.user_id,
                order.gateway,
                order.order_id,
                exc,
            )
            return None

        logger.info(
            "Enrollment %s for user %s from order %s:%s",
            "created" if created else "updated",
            order.user_id,
            order.gateway,
            order.order_id,
        )
        return enrollment

    def on_paid(self, order, manual: bool = False) -> Optional[Enrollment]:
        """Project the enrollment and send the enrollment e-mails."""
        enrollment = self.project(order)
        self.mailer.send_enrollment_emails(order, manual=manual)
        return enrollment
