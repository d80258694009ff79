"""
Seed Course Management Command

Creates a development course with a pricing row and a couple of coupons so
the price and checkout endpoints can be exercised locally. Safe to run more
than once: existing rows with the same title / codes are updated.

Usage:
    python manage.py seed_course
    python manage.py seed_course --title "Builder's Program" --inr 6499 --usd 199

Author: Builder's Program Development Team
Version: 1.0.0
"""

from django.core.management.base import BaseCommand
from django.db import transaction

from academy.models import Coupon, Course, CoursePricing

DEFAULT_COUPONS = [
    ("EARLY10", Coupon.Type.PERCENT, 10),
    ("FLAT500", Coupon.Type.FLAT, 50000),
]


class Command(BaseCommand):
    help = "Create or update a development course with pricing and coupons."

    def add_arguments(self, parser):
        parser.add_argument("--title", default="Builder's Program - Essential Track")
        parser.add_argument("--inr", type=int, default=6499, help="INR regular price (rupees)")
        parser.add_argument("--inr-early-bird", type=int, default=4999)
        parser.add_argument("--usd", type=int, default=199, help="USD regular price (dollars)")
        parser.add_argument("--usd-early-bird", type=int, default=149)
        parser.add_argument("--early-bird", action="store_true", help="Activate the early-bird tier")
        parser.add_argument("--no-coupons", action="store_true")

    @transaction.atomic
    def handle(self, *args, **options):
        course, created = Course.objects.get_or_create(
            title=options["title"], defaults={"is_active": True, "total_weeks": 5}
        )
        CoursePricing.objects.update_or_create(
            course=course,
            defaults={
                "inr_regular": options["inr"],
                "inr_early_bird": options["inr_early_bird"],
                "usd_regular": options["usd"],
                "usd_early_bird": options["usd_early_bird"],
                "is_early_bird_active": options["early_bird"],
            },
        )
        self.stdout.write(
            self.style.SUCCESS(f"{'Created' if created else 'Updated'} course {course.title} ({course.pk})")
        )

        if options["no_coupons"]:
            return
        for code, coupon_type, value in DEFAULT_COUPONS:
            Coupon.objects.update_or_create(
                code=code, defaults={"type": coupon_type, "value": value, "active": True}
            )
            self.stdout.write(f"  - coupon {code} ({coupon_type} {value})")
