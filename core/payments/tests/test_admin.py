from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase

from academy.tests.helpers import create_user
from core.payments.models import Order

from .helpers import pending_order


class OrderAdminActionTests(TestCase):
    url = "/admin/payments/order/"

    @classmethod
    def setUpTestData(cls):
        cls.admin = get_user_model().objects.create_superuser(
            username="admin", email="admin@example.com", password="Adm1n-Passw0rd!"
        )
        cls.user = create_user()

    def setUp(self):
        self.client.force_login(self.admin)

    def run_action(self, *orders):
        return self.client.post(
            self.url,
            {"action": "mark_paid_manual_fix", "_selected_action": [o.pk for o in orders]},
            follow=True,
        )

    def test_mark_paid_goes_through_engine(self):
        order = pending_order(self.user)
        with mock.patch("academy.enrollments.projector.EnrollmentProjector.on_paid") as on_paid:
            response = self.run_action(order)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(Order.objects.get(pk=order.pk).status, Order.Status.PAID)
        on_paid.assert_called_once()
        self.assertContains(response, "1 order(s) marked paid.")

    def test_failed_order_reported(self):
        order = pending_order(self.user)
        Order.objects.transition(order.gateway, order.order_id, Order.Status.FAILED)
        response = self.run_action(order)

        self.assertEqual(Order.objects.get(pk=order.pk).status, Order.Status.FAILED)
        self.assertContains(response, "0 order(s) marked paid.")

    def test_orders_cannot_be_added(self):
        response = self.client.get(f"{self.url}add/")
        self.assertEqual(response.status_code, 403)
