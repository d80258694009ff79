"""
Payments Django Admin Configuration

Orders are an audit trail: the admin shows them read-only and cannot add or
delete them. The only write is the "mark paid (manual fix)" action, which
goes through the reconciliation engine like every other trigger.

Author: Builder's Program Development Team
Version: 1.0.0
"""

from django.contrib import admin, messages
from django.utils.translation import gettext_lazy as _

from .exceptions import PaymentError
from .models import Order, WebhookEvent
from .reconciliation import build_engine
from .tracing import StepTrace


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_id",
        "gateway",
        "user_email",
        "amount",
        "currency",
        "coupon_code",
        "status",
        "paid_at",
        "created_at",
    )
    list_filter = ("gateway", "status", "currency")
    search_fields = ("order_id", "user_email", "payment_id")
    date_hierarchy = "created_at"
    actions = ["mark_paid_manual_fix"]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description=_("Mark paid (manual fix)"))
    def mark_paid_manual_fix(self, request, queryset):
        engine = build_engine(trace=StepTrace("ADMIN-MANUAL-FIX"))
        fixed = 0
        for order in queryset:
            try:
                result = engine.mark_paid(
                    order.order_id, gateway=order.gateway, strict=True, manual=True
                )
            except PaymentError as exc:
                self.message_user(
                    request, f"{order.gateway}:{order.order_id}: {exc.message}", messages.ERROR
                )
                continue
            fixed += int(result.changed)
        self.message_user(request, f"{fixed} order(s) marked paid.", messages.SUCCESS)


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = ("event_id", "gateway", "event_type", "received_at")
    list_filter = ("gateway", "event_type")
    search_fields = ("event_id",)
    readonly_fields = ("gateway", "event_id", "event_type", "received_at")

    def has_add_permission(self, request):
        return False
