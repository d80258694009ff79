"""
Enrollment projector, enrollment e-mails and the enrollment-status endpoint.
"""

from smtplib import SMTPException
from unittest import mock

from django.core import mail
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from academy.enrollments.notifications import EnrollmentMailer, format_amount
from academy.enrollments.projector import EnrollmentProjector
from academy.models import Enrollment
from core.payments.models import Order

from .helpers import create_course, create_user


def paid_order(user, course=None, order_id="order_1", gateway=Order.Gateway.RAZORPAY, **extra):
    values = dict(
        gateway=gateway,
        order_id=order_id,
        user=user,
        user_email=user.email if user else "guest@example.com",
        course=course,
        amount=649900,
        currency="INR",
        status=Order.Status.PAID,
        paid_at=timezone.now(),
    )
    values.update(extra)
    return Order.objects.create(**values)


@override_settings(ENROLLMENT_OPERATOR_EMAILS=["ops@example.com"])
class EnrollmentProjectorTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.course = create_course()
        cls.user = create_user()

    def test_project_creates_completed_enrollment(self):
        order = paid_order(self.user, self.course)
        enrollment = EnrollmentProjector().project(order)

        self.assertIsNotNone(enrollment)
        self.assertEqual(enrollment.payment_status, Enrollment.PaymentStatus.COMPLETED)
        self.assertEqual(enrollment.course, self.course)
        self.assertEqual(enrollment.cohort_id, "default")

    def test_second_paid_order_overwrites_single_row(self):
        projector = EnrollmentProjector()
        projector.project(paid_order(self.user, self.course, order_id="order_1"))
        other = create_course(title="Pro Track")
        projector.project(paid_order(self.user, other, order_id="order_2"))

        self.assertEqual(Enrollment.objects.filter(user=self.user).count(), 1)
        self.assertEqual(Enrollment.objects.get(user=self.user).course, other)

    def test_existing_pending_enrollment_completed(self):
        Enrollment.objects.create(user=self.user, payment_status=Enrollment.PaymentStatus.PENDING)
        EnrollmentProjector().project(paid_order(self.user, self.course))
        self.assertEqual(
            Enrollment.objects.get(user=self.user).payment_status,
            Enrollment.PaymentStatus.COMPLETED,
        )

    def test_order_without_user_is_a_gap(self):
        order = paid_order(None, self.course, user_email="guest@example.com")
        with self.assertLogs("academy.enrollments.projector", level="WARNING"):
            self.assertIsNone(EnrollmentProjector().project(order))
        self.assertFalse(Enrollment.objects.exists())

    def test_upsert_failure_is_logged(self):
        order = paid_order(self.user, self.course)
        with mock.patch.object(
            Enrollment.objects, "update_or_create", side_effect=DatabaseError("boom")
        ), self.assertLogs("academy.enrollments.projector", level="ERROR"):
            self.assertIsNone(EnrollmentProjector().project(order))

    def test_on_paid_sends_payer_and_operator_mail(self):
        order = paid_order(self.user, self.course, coupon_code="EARLY10")
        EnrollmentProjector().on_paid(order)

        self.assertEqual(len(mail.outbox), 2)
        payer, operator = mail.outbox
        self.assertEqual(payer.to, [self.user.email])
        self.assertEqual(payer.subject, f"Enrollment confirmed: {self.course.title}")
        self.assertIn("order_1", payer.alternatives[0][0])
        self.assertEqual(operator.to, ["ops@example.com"])
        self.assertEqual(operator.subject, f"New enrollment: {self.course.title}")

    def test_manual_fix_operator_subject(self):
        order = paid_order(self.user, self.course)
        EnrollmentProjector().on_paid(order, manual=True)
        self.assertEqual(mail.outbox[1].subject, f"Manual enrollment fix: {self.course.title}")
        self.assertIn("manually processed", mail.outbox[1].alternatives[0][0])

    def test_mail_failure_does_not_raise(self):
        order = paid_order(self.user, self.course)
        with mock.patch(
            "academy.enrollments.notifications.EmailMultiAlternatives.send",
            side_effect=SMTPException("down"),
        ), self.assertLogs("academy.enrollments.notifications", level="ERROR"):
            enrollment = EnrollmentProjector().on_paid(order)

        self.assertIsNotNone(enrollment)
        self.assertEqual(len(mail.outbox), 0)

    @override_settings(ENROLLMENT_OPERATOR_EMAILS=[])
    def test_no_operator_addresses(self):
        sent = EnrollmentMailer().send_enrollment_emails(paid_order(self.user, self.course))
        self.assertEqual(sent, 1)
        self.assertEqual(len(mail.outbox), 1)

    def test_format_amount(self):
        self.assertEqual(format_amount(649900, "INR"), "₹6,499 (INR)")
        self.assertEqual(format_amount(19950, "USD"), "$199.50 (USD)")


class EnrollmentStatusViewTests(TestCase):
    url = "/api/academy/enrollment-status/"

    @classmethod
    def setUpTestData(cls):
        cls.course = create_course()
        cls.user = create_user()

    def setUp(self):
        self.client = APIClient()

    def test_requires_authentication(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn("error", response.json())

    def test_not_enrolled_with_pending_order(self):
        Order.objects.create(
            gateway=Order.Gateway.STRIPE,
            order_id="cs_test_1",
            user=self.user,
            user_email=self.user.email,
            amount=19900,
            currency="USD",
        )
        self.client.force_authenticate(self.user)
        body = self.client.get(self.url).json()

        self.assertFalse(body["isEnrolled"])
        self.assertEqual(body["paymentStatus"], "pending")
        self.assertEqual(body["orders"][0]["orderId"], "cs_test_1")
        self.assertEqual(body["orders"][0]["status"], "pending")

    def test_enrolled_after_projection(self):
        EnrollmentProjector().project(paid_order(self.user, self.course))
        self.client.force_authenticate(self.user)
        body = self.client.get(self.url).json()

        self.assertTrue(body["isEnrolled"])
        self.assertEqual(body["paymentStatus"], "completed")
        self.assertEqual(body["course"]["title"], self.course.title)
        self.assertEqual(body["course"]["pricing"]["inr_regular"], 6499)

    def test_bearer_token_accepted(self):
        token = self.client.post(
            "/api/auth/token/",
            {"username": "student", "password": "Str0ng-Passw0rd!"},
            format="json",
        ).json()["access"]
        response = self.client.get(self.url, HTTP_AUTHORIZATION=f"Bearer {token}")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.json()["isEnrolled"])
