import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("academy", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "gateway",
                    models.CharField(
                        choices=[
                            ("stripe", "Card checkout (Stripe)"),
                            ("razorpay", "Regional orders (Razorpay)"),
                            ("paypal", "Wallet (PayPal)"),
                        ],
                        max_length=16,
                        verbose_name="Gateway",
                    ),
                ),
                ("order_id", models.CharField(max_length=255, verbose_name="Provider Order ID")),
                ("user_email", models.EmailField(max_length=254, verbose_name="User Email")),
                ("amount", models.PositiveIntegerField(help_text="Minor units (paise, cents)", verbose_name="Amount")),
                ("currency", models.CharField(max_length=3, verbose_name="Currency")),
                ("coupon_code", models.CharField(blank=True, max_length=64, null=True, verbose_name="Coupon")),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("paid", "Paid"), ("failed", "Failed")],
                        db_index=True,
                        default="pending",
                        max_length=16,
                        verbose_name="Status",
                    ),
                ),
                ("payment_id", models.CharField(blank=True, max_length=255, null=True, verbose_name="Payment ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                (
                    "course",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders",
                        to="academy.course",
                        verbose_name="Course",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="User",
                    ),
                ),
            ],
            options={
                "verbose_name": "Order",
                "verbose_name_plural": "Orders",
                "db_table": "order_enrollments",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["user_email"], name="order_user_email_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("gateway", "order_id"), name="uniq_gateway_order_id")
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "gateway",
                    models.CharField(
                        choices=[
                            ("stripe", "Card checkout (Stripe)"),
                            ("razorpay", "Regional orders (Razorpay)"),
                            ("paypal", "Wallet (PayPal)"),
                        ],
                        max_length=16,
                    ),
                ),
                ("event_id", models.CharField(max_length=255)),
                ("event_type", models.CharField(blank=True, max_length=128)),
                ("received_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "db_table": "payment_webhook_events",
                "ordering": ["-received_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("gateway", "event_id"), name="uniq_gateway_event_id")
                ],
            },
        ),
    ]
