"""
Enrollment status for the signed-in user.

GET /api/academy/enrollment-status/ (bearer)
    {"isEnrolled": bool, "paymentStatus": "...", "cohortId": "...",
     "course": {...} | null, "orders": [...]}

The answer can lag behind the provider: an order stays `pending` until its
webhook, return callback or a manual fix settles it.
"""

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.payments.models import Order
from core.payments.serializers import OrderSerializer

from ..courses.serializers import CourseSerializer
from .models import Enrollment


class EnrollmentStatusView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = request.user
        enrollment = (
            Enrollment.objects.select_related("course", "course__pricing")
            .filter(user=user)
            .first()
        )
        orders = Order.objects.filter(user=user).order_by("-created_at")

        payment_status = enrollment.payment_status if enrollment else None
        if payment_status is None and orders.filter(status=Order.Status.PENDING).exists():
            payment_status = Enrollment.PaymentStatus.PENDING

        return Response(
            {
                "isEnrolled": bool(
                    enrollment
                    and enrollment.payment_status == Enrollment.PaymentStatus.COMPLETED
                ),
                "paymentStatus": payment_status,
                "cohortId": enrollment.cohort_id if enrollment else None,
                "course": (
                    CourseSerializer(enrollment.course).data
                    if enrollment and enrollment.course
                    else None
                ),
                "orders": OrderSerializer(orders, many=True).data,
            },
            status=status.HTTP_200_OK,
        )
