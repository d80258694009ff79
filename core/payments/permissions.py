import hmac

from django.conf import settings
from rest_framework.permissions import BasePermission

INTERNAL_TOKEN_HEADER = "X-Internal-Token"


class IsTrustedCaller(BasePermission):
    """
    Allows staff users (JWT) and server-to-server callers presenting
    `X-Internal-Token` equal to PAYMENTS_INTERNAL_TOKEN.
    """

    message = "Trusted caller required"

    def has_permission(self, request, view):
        user = request.user
        if user and user.is_authenticated and user.is_staff:
            return True

        expected = settings.PAYMENTS_INTERNAL_TOKEN
        provided = request.headers.get(INTERNAL_TOKEN_HEADER)
        if not expected or not provided:
            return False
        return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
