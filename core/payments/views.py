"""
Payments Views (core.payments)
==============================

REST endpoints for creating provider orders and for every path that can
settle them. Each request builds its own adapter, engine and tracer.

Endpoints
---------

1. RazorpayOrderView
   - URL: /api/payments/razorpay/orders/
   - Method: POST
   - Auth: Required
   - Body: {"courseId": "...", "coupon": "EARLY10"}
   - Returns: {"orderId": "...", "keyId": "..."} for Razorpay Checkout.js

2. StripeSessionView
   - URL: /api/payments/stripe/sessions/
   - Method: POST
   - Auth: Required
   - Returns: {"sessionId": "...", "checkoutUrl": "..."}

3. PayPalOrderView
   - URL: /api/payments/paypal/orders/
   - Method: POST
   - Auth: Required
   - Returns: {"approvalUrl": "...", "orderId": "..."}
   - 503 with code PAYPAL_ACCOUNT_RESTRICTED when the merchant account is restricted

4. WebhookView (razorpay / stripe / paypal)
   - URL: /api/payments/webhooks/<gateway>/
   - Method: POST
   - Auth: Provider signature
   - Returns: {"received": true}, also for orders we do not know

5. ReturnView
   - URL: /api/payments/return/?gateway=paypal&token=<order id>
   - Method: GET
   - Auth: None
   - Returns the tagged outcome: {"outcome": "confirmed" | "pending", ...}

6. PayPalCaptureView
   - URL: /api/payments/paypal/capture/
   - Method: POST
   - Auth: Trusted caller
   - Body: {"orderId": "..."}

7. ManualFixView
   - URL: /api/payments/admin/manual-fix/
   - Method: POST
   - Auth: Trusted caller
   - Body: {"userEmail": "...", "orderId": "..."}

8. ManualConfirmView
   - URL: /api/payments/admin/manual-confirm/
   - Method: POST
   - Auth: Trusted caller
   - Body: {"orderId": "...", "paymentId": "pay_..."}

Security
--------
- Card, wallet and bank details never reach this backend.
- Webhooks are authenticated by provider signatures only; JWT auth is skipped.
- Manual paths require a staff JWT or the internal token.

Author: Builder's Program Development Team
Version: 1.0.0
"""

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from academy.courses.regions import selector_from_request
from academy.courses.serializers import PriceRequestSerializer

from .exceptions import PaymentError
from .gateways import build_adapter
from .permissions import IsTrustedCaller
from .reconciliation import build_engine
from .serializers import (
    CaptureRequestSerializer,
    ManualConfirmSerializer,
    ManualFixSerializer,
    OrderSerializer,
)
from .services import create_order
from .tracing import StepTrace

RETURN_ORDER_PARAMS = ("orderId", "token", "session_id", "razorpay_order_id")


def trace_failure(trace: StepTrace, exc: PaymentError) -> None:
    """Record a failed request under the request's trace tag before the handler renders it."""
    details = {
        "error": exc.message,
        "code": exc.error_code,
        "status": exc.status_code,
        "gateway": getattr(exc, "gateway", None),
        "provider_status": getattr(exc, "provider_status", None),
        "details": exc.details or None,
    }
    details = {key: value for key, value in details.items() if value is not None}
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        trace.error("Request failed", **details)
    else:
        trace.warning("Request rejected", **details)


class CreateOrderView(APIView):
    """Shared POST handler; subclasses pick the gateway."""

    permission_classes = [IsAuthenticated]
    gateway: str = ""
    trace_tag: str = ""

    def post(self, request):
        trace = StepTrace(self.trace_tag)
        trace.step("Function started")

        serializer = PriceRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        selector = selector_from_request(request, serializer.validated_data)

        try:
            created = create_order(build_adapter(self.gateway), request.user, selector, trace=trace)
        except PaymentError as exc:
            trace_failure(trace, exc)
            raise
        return Response(created.client_directives, status=status.HTTP_200_OK)


class RazorpayOrderView(CreateOrderView):
    gateway = "razorpay"
    trace_tag = "CREATE-ORDER"


class StripeSessionView(CreateOrderView):
    gateway = "stripe"
    trace_tag = "CREATE-SESSION"


class PayPalOrderView(CreateOrderView):
    gateway = "paypal"
    trace_tag = "PAYPAL-CREATE-ORDER"


class WebhookView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]
    gateway: str = ""

    def post(self, request):
        trace = StepTrace(f"{self.gateway.upper()}-WEBHOOK")
        try:
            engine = build_engine(self.gateway, trace=trace)
            result = engine.handle_webhook(request.body, request.headers)
        except PaymentError as exc:
            trace_failure(trace, exc)
            raise
        return Response(result, status=status.HTTP_200_OK)


class RazorpayWebhookView(WebhookView):
    gateway = "razorpay"


class StripeWebhookView(WebhookView):
    gateway = "stripe"


class PayPalWebhookView(WebhookView):
    gateway = "paypal"


class ReturnView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        trace = StepTrace("PAYMENT-RETURN")
        params = request.query_params
        gateway = params.get("gateway") or None
        order_id = next((params[key] for key in RETURN_ORDER_PARAMS if params.get(key)), None)
        trace.step("Return received", gateway=gateway, order_id=order_id)

        engine = build_engine(gateway, trace=trace)
        outcome = engine.handle_return(order_id)
        trace.step("Return resolved", **outcome.to_response())
        return Response(outcome.to_response(), status=status.HTTP_200_OK)


class PayPalCaptureView(APIView):
    permission_classes = [IsTrustedCaller]

    def post(self, request):
        trace = StepTrace("PAYPAL-CAPTURE")
        serializer = CaptureRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        engine = build_engine("paypal", trace=trace)
        try:
            result = engine.capture_wallet_order(serializer.validated_data["order_id"])
        except PaymentError as exc:
            trace_failure(trace, exc)
            raise
        return Response(result, status=status.HTTP_200_OK)


class ManualFixView(APIView):
    permission_classes = [IsTrustedCaller]

    def post(self, request):
        trace = StepTrace("MANUAL-ENROLLMENT-FIX")
        serializer = ManualFixSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user_email = serializer.validated_data["user_email"]
        order_id = serializer.validated_data["order_id"]

        result = build_engine(trace=trace).manual_fix(user_email, order_id)
        return Response(
            {
                "success": True,
                "message": "Enrollment fixed successfully" if result.changed else "Order already paid",
                "orderId": order_id,
                "userEmail": user_email,
                "status": result.status,
            },
            status=status.HTTP_200_OK,
        )


class ManualConfirmView(APIView):
    permission_classes = [IsTrustedCaller]

    def post(self, request):
        trace = StepTrace("MANUAL-CONFIRM")
        serializer = ManualConfirmSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        engine = build_engine(data["gateway"], trace=trace)
        result = engine.manual_confirm(data["order_id"], data.get("payment_id"))
        return Response(
            {
                "success": True,
                "message": "Payment confirmed successfully" if result.changed else "Order already paid",
                "order": OrderSerializer(result.order).data,
            },
            status=status.HTTP_200_OK,
        )
