import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import academy.enrollments.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Course",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("title", models.CharField(max_length=255, verbose_name="Title")),
                (
                    "is_active",
                    models.BooleanField(
                        default=True,
                        help_text="Only active courses can be priced and sold",
                        verbose_name="Active",
                    ),
                ),
                ("start_date", models.DateField(blank=True, null=True, verbose_name="Start Date")),
                ("total_weeks", models.PositiveSmallIntegerField(blank=True, null=True, verbose_name="Total Weeks")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name": "Course",
                "verbose_name_plural": "Courses",
                "db_table": "courses",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Coupon",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=64, unique=True, verbose_name="Code")),
                (
                    "type",
                    models.CharField(
                        choices=[("percent", "Percent"), ("flat", "Flat (minor units)")],
                        max_length=16,
                        verbose_name="Type",
                    ),
                ),
                (
                    "value",
                    models.PositiveIntegerField(
                        help_text="Percent points for percent coupons, minor units (paise/cents) for flat",
                        verbose_name="Value",
                    ),
                ),
                ("active", models.BooleanField(default=True, verbose_name="Active")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name": "Coupon",
                "verbose_name_plural": "Coupons",
                "db_table": "coupons",
            },
        ),
        migrations.CreateModel(
            name="CoursePricing",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("inr_regular", models.PositiveIntegerField(verbose_name="INR Regular")),
                ("inr_early_bird", models.PositiveIntegerField(verbose_name="INR Early Bird")),
                ("usd_regular", models.PositiveIntegerField(verbose_name="USD Regular")),
                ("usd_early_bird", models.PositiveIntegerField(verbose_name="USD Early Bird")),
                ("is_early_bird_active", models.BooleanField(default=False, verbose_name="Early Bird Active")),
                (
                    "early_bird_end_date",
                    models.DateTimeField(
                        blank=True,
                        help_text="Leave empty to keep the early-bird price until switched off",
                        null=True,
                        verbose_name="Early Bird Ends",
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "course",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="pricing",
                        to="academy.course",
                        verbose_name="Course",
                    ),
                ),
            ],
            options={
                "verbose_name": "Course Pricing",
                "verbose_name_plural": "Course Pricing",
                "db_table": "course_pricing",
            },
        ),
        migrations.CreateModel(
            name="Enrollment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "cohort_id",
                    models.CharField(
                        default=academy.enrollments.models.default_cohort,
                        max_length=64,
                        verbose_name="Cohort",
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("completed", "Completed"), ("failed", "Failed")],
                        default="pending",
                        max_length=16,
                        verbose_name="Payment Status",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "course",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="enrollments",
                        to="academy.course",
                        verbose_name="Course",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="enrollment",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="User",
                    ),
                ),
            ],
            options={
                "verbose_name": "Enrollment",
                "verbose_name_plural": "Enrollments",
                "db_table": "enrollments",
            },
        ),
    ]
