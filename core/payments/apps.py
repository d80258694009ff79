from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """
    Order store, gateway adapters and the reconciliation engine that moves
    orders from `pending` to `paid` or `failed`.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "core.payments"
    label = "payments"
    verbose_name = "Payments"
