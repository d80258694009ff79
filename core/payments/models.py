"""
Order Store

Models:
- Order: one row per provider order (`order_enrollments`), identified by
  (gateway, order_id). It is the single record every success path converges on.
- WebhookEvent: provider event ids already processed, used to acknowledge
  redeliveries without reprocessing them.

Order state machine:

    pending ──► paid
       └──────► failed

`paid` and `failed` are terminal. Transitions are made only with
`Order.objects.transition(...)`, a conditional UPDATE guarded on
`status = 'pending'`, so concurrent webhook/return/manual callers produce
exactly one winner. Orders are never deleted.

Author: Builder's Program Development Team
Version: 1.0.0
"""

from typing import Optional

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class OrderQuerySet(models.QuerySet):
    def for_gateway(self, gateway: str, order_id: str) -> "OrderQuerySet":
        return self.filter(gateway=gateway, order_id=order_id)

    def transition(
        self,
        gateway: str,
        order_id: str,
        status: str,
        payment_id: Optional[str] = None,
        now=None,
    ) -> bool:
        """
        Move a pending order to `status`.

        Returns:
            True if this call performed the transition, False if the order is
            missing or no longer pending.
        """
        now = now or timezone.now()
        changes = {"status": status, "updated_at": now}
        if status == Order.Status.PAID:
            changes["paid_at"] = now
        if payment_id:
            changes["payment_id"] = payment_id
        updated = self.for_gateway(gateway, order_id).filter(
            status=Order.Status.PENDING
        ).update(**changes)
        return updated == 1


class Order(models.Model):
    class Gateway(models.TextChoices):
        STRIPE = "stripe", _("Card checkout (Stripe)")
        RAZORPAY = "razorpay", _("Regional orders (Razorpay)")
        PAYPAL = "paypal", _("Wallet (PayPal)")

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        PAID = "paid", _("Paid")
        FAILED = "failed", _("Failed")

    gateway = models.CharField(max_length=16, choices=Gateway.choices, verbose_name=_("Gateway"))
    order_id = models.CharField(max_length=255, verbose_name=_("Provider Order ID"))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
        verbose_name=_("User"),
    )
    user_email = models.EmailField(verbose_name=_("User Email"))
    course = models.ForeignKey(
        "academy.Course",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
        verbose_name=_("Course"),
    )
    amount = models.PositiveIntegerField(
        verbose_name=_("Amount"), help_text=_("Minor units (paise, cents)")
    )
    currency = models.CharField(max_length=3, verbose_name=_("Currency"))
    coupon_code = models.CharField(max_length=64, null=True, blank=True, verbose_name=_("Coupon"))
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
        verbose_name=_("Status"),
    )
    payment_id = models.CharField(max_length=255, null=True, blank=True, verbose_name=_("Payment ID"))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    objects = OrderQuerySet.as_manager()

    class Meta:
        verbose_name = _("Order")
        verbose_name_plural = _("Orders")
        db_table = "order_enrollments"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["gateway", "order_id"], name="uniq_gateway_order_id"),
        ]
        indexes = [models.Index(fields=["user_email"], name="order_user_email_idx")]

    def __str__(self) -> str:
        return f"{self.gateway}:{self.order_id} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status != self.Status.PENDING


class WebhookEvent(models.Model):
    """Provider event id seen on a webhook that has been processed."""

    gateway = models.CharField(max_length=16, choices=Order.Gateway.choices)
    event_id = models.CharField(max_length=255)
    event_type = models.CharField(max_length=128, blank=True)
    received_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Webhook Event")
        verbose_name_plural = _("Webhook Events")
        db_table = "payment_webhook_events"
        ordering = ["-received_at"]
        constraints = [
            models.UniqueConstraint(fields=["gateway", "event_id"], name="uniq_gateway_event_id"),
        ]

    def __str__(self) -> str:
        return f"{self.gateway}:{self.event_id} {self.event_type}"
