"""
Course Catalogue Models

This module defines the read-mostly reference data used when pricing a checkout:
the course itself, its regional price row and the coupon codes that can be
applied on top of the base price.

Models:
- Course: A sellable course (one active course is the default product)
- CoursePricing: Regular and early-bird prices per currency for a course
- Coupon: Percent or flat discount codes

Amounts on CoursePricing are stored in major units (rupees, dollars) because
that is how operators enter them; the pricing resolver converts to minor units.
Flat coupon values are stored in minor units since they are subtracted from
the already converted amount.

Author: Builder's Program Development Team
Version: 1.0.0
"""

import uuid

from django.db import models
from django.utils.translation import gettext_lazy as _

__all__ = ["Course", "CoursePricing", "Coupon"]


class Course(models.Model):
    """
    A course that can be purchased.

    When a checkout does not name a course, the most recently created active
    course is sold.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255, verbose_name=_("Title"))
    is_active = models.BooleanField(
        default=True,
        verbose_name=_("Active"),
        help_text=_("Only active courses can be priced and sold"),
    )
    start_date = models.DateField(null=True, blank=True, verbose_name=_("Start Date"))
    total_weeks = models.PositiveSmallIntegerField(
        null=True, blank=True, verbose_name=_("Total Weeks")
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Course")
        verbose_name_plural = _("Courses")
        db_table = "courses"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.title


class CoursePricing(models.Model):
    """
    Regional price list of a course.

    Attributes:
        inr_regular / inr_early_bird: Prices in rupees
        usd_regular / usd_early_bird: Prices in dollars
        is_early_bird_active: Master switch for the early-bird tier
        early_bird_end_date: Optional cutoff; without one the tier stays active
    """

    course = models.OneToOneField(
        Course,
        on_delete=models.CASCADE,
        related_name="pricing",
        verbose_name=_("Course"),
    )
    inr_regular = models.PositiveIntegerField(verbose_name=_("INR Regular"))
    inr_early_bird = models.PositiveIntegerField(verbose_name=_("INR Early Bird"))
    usd_regular = models.PositiveIntegerField(verbose_name=_("USD Regular"))
    usd_early_bird = models.PositiveIntegerField(verbose_name=_("USD Early Bird"))
    is_early_bird_active = models.BooleanField(
        default=False, verbose_name=_("Early Bird Active")
    )
    early_bird_end_date = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_("Early Bird Ends"),
        help_text=_("Leave empty to keep the early-bird price until switched off"),
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Course Pricing")
        verbose_name_plural = _("Course Pricing")
        db_table = "course_pricing"

    def __str__(self) -> str:
        return f"Pricing for {self.course}"

    def major_price(self, column: str, early_bird: bool) -> int:
        """
        Return the major-unit price for a currency column prefix ("inr", "usd").
        """
        suffix = "early_bird" if early_bird else "regular"
        return getattr(self, f"{column}_{suffix}")


class Coupon(models.Model):
    """
    Discount code applied after the base (regular or early-bird) price.
    """

    class Type(models.TextChoices):
        PERCENT = "percent", _("Percent")
        FLAT = "flat", _("Flat (minor units)")

    code = models.CharField(max_length=64, unique=True, verbose_name=_("Code"))
    type = models.CharField(max_length=16, choices=Type.choices, verbose_name=_("Type"))
    value = models.PositiveIntegerField(
        verbose_name=_("Value"),
        help_text=_("Percent points for percent coupons, minor units (paise/cents) for flat"),
    )
    active = models.BooleanField(default=True, verbose_name=_("Active"))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Coupon")
        verbose_name_plural = _("Coupons")
        db_table = "coupons"

    def __str__(self) -> str:
        return f"{self.code} ({self.type} {self.value})"

    def save(self, *args, **kwargs):
        # Lookups are case-insensitive; codes are stored upper-case.
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)
