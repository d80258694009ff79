"""
Payments Serializers

Checkout bodies are validated with academy.courses.serializers.PriceRequestSerializer.

Request bodies use the camelCase field names the SPA sends; `source=` maps
them onto snake_case attributes.

Serializers:
- CaptureRequestSerializer: PayPal capture
- ManualFixSerializer: (userEmail, orderId)
- ManualConfirmSerializer: (orderId, paymentId)
- OrderSerializer: order rows in enrollment-status and manual-confirm answers

Author: Builder's Program Development Team
Version: 1.0.0
"""

from rest_framework import serializers

from .models import Order


class CaptureRequestSerializer(serializers.Serializer):
    orderId = serializers.CharField(source="order_id", max_length=255)


class ManualFixSerializer(serializers.Serializer):
    userEmail = serializers.EmailField(source="user_email")
    orderId = serializers.CharField(source="order_id", max_length=255)


class ManualConfirmSerializer(serializers.Serializer):
    orderId = serializers.CharField(source="order_id", max_length=255)
    paymentId = serializers.CharField(
        source="payment_id", required=False, allow_blank=True, allow_null=True, max_length=255
    )
    gateway = serializers.ChoiceField(
        choices=Order.Gateway.choices, required=False, default=Order.Gateway.RAZORPAY
    )


class OrderSerializer(serializers.ModelSerializer):
    orderId = serializers.CharField(source="order_id")
    userEmail = serializers.EmailField(source="user_email")
    courseId = serializers.UUIDField(source="course_id", allow_null=True)
    couponCode = serializers.CharField(source="coupon_code", allow_null=True)
    paymentId = serializers.CharField(source="payment_id", allow_null=True)
    createdAt = serializers.DateTimeField(source="created_at")
    paidAt = serializers.DateTimeField(source="paid_at", allow_null=True)

    class Meta:
        model = Order
        fields = [
            "gateway",
            "orderId",
            "userEmail",
            "courseId",
            "amount",
            "currency",
            "couponCode",
            "status",
            "paymentId",
            "createdAt",
            "paidAt",
        ]
        read_only_fields = fields
