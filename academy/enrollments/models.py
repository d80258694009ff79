"""
Enrollment Model

One enrollment row per user. It is derived from paid orders by the
enrollment projector: a second paid order for the same user overwrites the
row instead of adding another one.

Author: Builder's Program Development Team
Version: 1.0.0
"""

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

__all__ = ["Enrollment"]


def default_cohort() -> str:
    return settings.ENROLLMENT_DEFAULT_COHORT


class Enrollment(models.Model):
    """
    Grants a user access to a course.

    Attributes:
        user: The enrolled account (unique)
        course: Course from the paid order, if the order named one
        cohort_id: Cohort identifier, defaults to ENROLLMENT_DEFAULT_COHORT
        payment_status: pending / completed / failed
    """

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", _("Pending")
        COMPLETED = "completed", _("Completed")
        FAILED = "failed", _("Failed")

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="enrollment",
        verbose_name=_("User"),
    )
    course = models.ForeignKey(
        "academy.Course",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="enrollments",
        verbose_name=_("Course"),
    )
    cohort_id = models.CharField(
        max_length=64, default=default_cohort, verbose_name=_("Cohort")
    )
    payment_status = models.CharField(
        max_length=16,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        verbose_name=_("Payment Status"),
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Enrollment")
        verbose_name_plural = _("Enrollments")
        db_table = "enrollments"

    def __str__(self) -> str:
        return f"{self.user} - {self.cohort_id} ({self.payment_status})"

    def __repr__(self) -> str:
        return (
            f"<Enrollment(user_id={self.user_id}, course_id={self.course_id}, "
            f"payment_status={self.payment_status})>"
        )
