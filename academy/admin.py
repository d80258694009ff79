"""
Academy Django Admin Configuration

Admin screens for the catalogue operators edit (courses, pricing rows,
coupons) and for the enrollment records projected from paid orders.

Author: Builder's Program Development Team
Version: 1.0.0
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import Coupon, Course, CoursePricing, Enrollment


class CoursePricingInline(admin.StackedInline):
    model = CoursePricing
    can_delete = False
    extra = 0
    fieldsets = (
        (_("INR (major units)"), {"fields": ("inr_regular", "inr_early_bird")}),
        (_("USD (major units)"), {"fields": ("usd_regular", "usd_early_bird")}),
        (_("Early Bird"), {"fields": ("is_early_bird_active", "early_bird_end_date")}),
    )


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ("title", "is_active", "start_date", "total_weeks", "created_at")
    list_filter = ("is_active",)
    search_fields = ("title",)
    readonly_fields = ("id", "created_at")
    inlines = [CoursePricingInline]


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ("code", "type", "value", "active", "created_at")
    list_filter = ("type", "active")
    search_fields = ("code",)


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ("user", "course", "cohort_id", "payment_status", "updated_at")
    list_filter = ("payment_status", "cohort_id")
    search_fields = ("user__email", "user__username")
    raw_id_fields = ("user",)
    readonly_fields = ("created_at", "updated_at")
