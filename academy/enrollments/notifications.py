"""
Enrollment e-mails sent after an order is paid.

- payer confirmation  -> order.user_email
- operator notification -> settings.ENROLLMENT_OPERATOR_EMAILS

Delivery goes through Django's configured e-mail backend. A failed send is
logged and never propagates: the payment is already recorded.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils.html import strip_tags

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {"INR": "₹", "USD": "$"}

GATEWAY_LABELS = {
    "stripe": "Stripe",
    "razorpay": "Razorpay",
    "paypal": "PayPal",
}


def format_amount(amount: int, currency: str) -> str:
    major = Decimal(amount or 0) / 100
    symbol = CURRENCY_SYMBOLS.get((currency or "").upper(), "")
    text = f"{int(major):,}" if major == major.to_integral_value() else f"{major:,.2f}"
    return f"{symbol}{text} ({(currency or '').upper()})" if symbol else f"{currency} {text}"


class EnrollmentMailer:
    def __init__(
        self,
        from_email: Optional[str] = None,
        operator_emails: Optional[Sequence[str]] = None,
    ) -> None:
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL
        self.operator_emails = list(
            operator_emails if operator_emails is not None else settings.ENROLLMENT_OPERATOR_EMAILS
        )

    def build_context(self, order, manual: bool = False) -> Dict[str, Any]:
        course = order.course
        return {
            "order": order,
            "course_title": course.title if course else "your course",
            "start_date": course.start_date if course else None,
            "total_weeks": course.total_weeks if course else None,
            "amount_display": format_amount(order.amount, order.currency),
            "gateway_label": GATEWAY_LABELS.get(order.gateway, order.gateway),
            "manual": manual,
        }

    def _send(self, subject: str, template: str, context: Dict[str, Any], to: Sequence[str]) -> bool:
        html = render_to_string(template, context)
        message = EmailMultiAlternatives(
            subject=subject,
            body=strip_tags(html),
            from_email=self.from_email,
            to=list(to),
        )
        message.attach_alternative(html, "text/html")
        message.send(fail_silently=False)
        return True

    def send_enrollment_emails(self, order, manual: bool = False) -> int:
        """
        Send the payer confirmation and the operator notification.

        Returns:
            Number of messages sent
        """
        context = self.build_context(order, manual=manual)
        title = context["course_title"]
        sent = 0

        try:
            self._send(
                f"Enrollment confirmed: {title}",
                "academy/emails/enrollment_confirmed.html",
                context,
                [order.user_email],
            )
            sent += 1
        except Exception as exc:
            logger.error("Payer confirmation e-mail to %s failed: %s", order.user_email, exc)

        if not self.operator_emails:
            logger.info("No ENROLLMENT_OPERATOR_EMAILS configured, skipping operator notification")
            return sent

        subject = f"Manual enrollment fix: {title}" if manual else f"New enrollment: {title}"
        try:
            self._send(
                subject,
                "academy/emails/operator_notification.html",
                context,
                self.operator_emails,
            )
            sent += 1
        except Exception as exc:
            logger.error("Operator notification e-mail failed: %s", exc)

        logger.info("Enrollment e-mails sent for %s:%s (%s)", order.gateway, order.order_id, sent)
        return sent
