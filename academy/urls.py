"""
Academy URL Configuration

URL Structure:
- /api/academy/price/: Current price for the buyer's region (public)
- /api/academy/enrollment-status/: Enrollment and orders of the signed-in user

Author: Builder's Program Development Team
Version: 1.0.0
"""

from typing import List

from django.urls import URLPattern, path

from .courses.views import PriceView
from .enrollments.views import EnrollmentStatusView

app_name = "academy"

urlpatterns: List[URLPattern] = [
    path("price/", PriceView.as_view(), name="price"),
    path("enrollment-status/", EnrollmentStatusView.as_view(), name="enrollment-status"),
]
