from django.urls import path

from . import views

app_name = "payments"

urlpatterns = [
    # Order creation
    path("razorpay/orders/", views.RazorpayOrderView.as_view(), name="razorpay-orders"),
    path("stripe/sessions/", views.StripeSessionView.as_view(), name="stripe-sessions"),
    path("paypal/orders/", views.PayPalOrderView.as_view(), name="paypal-orders"),
    # Provider webhooks
    path("webhooks/razorpay/", views.RazorpayWebhookView.as_view(), name="webhook-razorpay"),
    path("webhooks/stripe/", views.StripeWebhookView.as_view(), name="webhook-stripe"),
    path("webhooks/paypal/", views.PayPalWebhookView.as_view(), name="webhook-paypal"),
    # Return / capture
    path("return/", views.ReturnView.as_view(), name="return"),
    path("paypal/capture/", views.PayPalCaptureView.as_view(), name="paypal-capture"),
    # Operator tooling
    path("admin/manual-fix/", views.ManualFixView.as_view(), name="manual-fix"),
    path("admin/manual-confirm/", views.ManualConfirmView.as_view(), name="manual-confirm"),
]
