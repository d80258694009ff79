"""
Academy Application Configuration

The academy app owns everything a student sees before and after paying:
courses and their pricing rows, coupons, the pricing resolver and the
enrollment record that is projected from paid orders.

Author: Builder's Program Development Team
Version: 1.0.0
"""

from django.apps import AppConfig


class AcademyConfig(AppConfig):
    """
    Configuration class for the academy Django application.

    Attributes:
        default_auto_field: Default primary key field type for models
        name: Application name for Django registration
        verbose_name: Human-readable application name for admin interface
    """

    default_auto_field: str = "django.db.models.BigAutoField"
    name: str = "academy"
    verbose_name: str = "Academy"
