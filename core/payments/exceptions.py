"""
Payment Exceptions

Exception hierarchy for order creation, pricing and reconciliation, plus the
DRF exception handler that turns them (and every other API error) into the
`{"error": "..."}` body the SPA expects.

Hierarchy:
    PaymentError
    ├── Unauthenticated            401  missing/invalid user token
    ├── Unauthorized               401  bad webhook signature / untrusted caller
    │   └── WebhookSignatureError
    ├── NotFound                   404  no active course/pricing, order missing on manual fix
    ├── ValidationError            400  malformed request body
    ├── OrderStateError            409  order already in a conflicting terminal state
    ├── GatewayError               500  provider HTTP failure or timeout
    │   └── PayPalAccountRestricted 503 PAYPAL_ACCOUNT_RESTRICTED
    └── PersistenceError           500  local write failed after the provider call

Author: Builder's Program Development Team
Version: 1.0.0
"""

import logging
from typing import Any, Dict, Optional

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    """
    Base exception for all payment and enrollment errors.

    Attributes:
        message (str): Human-readable error message
        status_code (int): HTTP status used when the error reaches an endpoint
        error_code (Optional[str]): Stable code the client can branch on
        details (Dict[str, Any]): Additional context for logs
    """

    default_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_error_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code or self.default_status_code
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to the response body.

        Returns:
            `{"error": message}` plus `"code"` when the error has a stable code
        """
        data: Dict[str, Any] = {"error": self.message}
        if self.error_code:
            data["code"] = self.error_code
        return data


class Unauthenticated(PaymentError):
    default_status_code = status.HTTP_401_UNAUTHORIZED
    default_error_code = "UNAUTHENTICATED"

    def __init__(self, message: str = "User not authenticated or email not available") -> None:
        super().__init__(message)


class Unauthorized(PaymentError):
    default_status_code = status.HTTP_401_UNAUTHORIZED
    default_error_code = "UNAUTHORIZED"


class WebhookSignatureError(Unauthorized):
    def __init__(self, message: str = "Invalid signature", gateway: Optional[str] = None) -> None:
        self.gateway = gateway
        super().__init__(message, details={"gateway": gateway})


class NotFound(PaymentError):
    default_status_code = status.HTTP_404_NOT_FOUND
    default_error_code = "NOT_FOUND"


class ValidationError(PaymentError):
    default_status_code = status.HTTP_400_BAD_REQUEST
    default_error_code = "VALIDATION_ERROR"


class OrderStateError(PaymentError):
    default_status_code = status.HTTP_409_CONFLICT
    default_error_code = "ORDER_STATE_CONFLICT"


class GatewayError(PaymentError):
    """
    Raised when a payment provider call fails (HTTP error, timeout, bad payload).

    Attributes:
        gateway (str): Provider the call went to
        provider_status (Optional[int]): HTTP status returned by the provider
    """

    default_error_code = "GATEWAY_ERROR"

    def __init__(
        self,
        message: str,
        gateway: str,
        provider_status: Optional[int] = None,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.gateway = gateway
        self.provider_status = provider_status
        super().__init__(message, status_code, error_code, details)


class PayPalAccountRestricted(GatewayError):
    """
    The merchant PayPal account cannot receive payments. Surfaced with a stable
    code so the client can show operator guidance instead of a generic failure.
    """

    default_status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_error_code = "PAYPAL_ACCOUNT_RESTRICTED"

    def __init__(self, debug_id: Optional[str] = None) -> None:
        self.debug_id = debug_id
        super().__init__(
            "PayPal order create failed",
            gateway="paypal",
            provider_status=422,
            details={"debug_id": debug_id},
        )


class PersistenceError(PaymentError):
    """
    A local write failed after the provider accepted the order, leaving an
    external order without a local record.
    """

    default_error_code = "PERSISTENCE_ERROR"


# --- DRF integration ---


def _drf_message(data: Any) -> str:
    if isinstance(data, dict):
        if "detail" in data:
            return str(data["detail"])
        parts = []
        for key, value in data.items():
            value = value[0] if isinstance(value, list) and value else value
            parts.append(f"{key}: {value}")
        return "; ".join(parts)
    if isinstance(data, list) and data:
        return str(data[0])
    return str(data)


def _log_payment_error(exc: PaymentError, context: Dict[str, Any]) -> None:
    view = context.get("view")
    fields = {
        "view": view.__class__.__name__ if view else None,
        "code": exc.error_code,
        "gateway": getattr(exc, "gateway", None),
        "provider_status": getattr(exc, "provider_status", None),
        **exc.details,
    }
    extra = ", ".join(f"{key}={value}" for key, value in fields.items() if value is not None)
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Payment error %s: %s (%s)", exc.status_code, exc.message, extra)
    else:
        logger.warning("Payment error %s: %s (%s)", exc.status_code, exc.message, extra)


def payment_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    """
    Project-wide DRF exception handler.

    - PaymentError subclasses are logged (error for 5xx, warning otherwise)
      and map to their status and `to_dict()` body
    - DRF exceptions keep their status, body reshaped to `{"error": ...}`
    - anything else is logged and returned as a 500 with the error message
    """
    if isinstance(exc, PaymentError):
        _log_payment_error(exc, context)
        return Response(exc.to_dict(), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        response.data = {"error": _drf_message(response.data)}
        return response

    view = context.get("view")
    logger.exception(
        "Unhandled error in %s: %s", view.__class__.__name__ if view else "view", exc
    )
    return Response({"error": str(exc)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
