"""
Root URL configuration.

- /admin/            Jazzmin-themed Django admin (orders, enrollments, pricing)
- /api/auth/         JWT token pair for the SPA
- /api/academy/      pricing and enrollment status
- /api/payments/     checkout, webhooks, return callback and operator endpoints
"""

from django.contrib import admin
from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("api/auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("api/academy/", include("academy.urls")),
    path("api/payments/", include("core.payments.urls")),
]
