"""
Gateway adapters keyed by the value stored in `Order.gateway`.

Views build a fresh adapter per request through `build_adapter` so no
provider client or credential lives at module level.
"""

from typing import Dict, Type

from ..exceptions import ValidationError
from .base import (
    AssumedPending,
    CheckoutContext,
    Confirmation,
    Confirmed,
    CreatedOrder,
    GatewayAdapter,
    ProviderOrder,
)
from .paypal_orders import PayPalOrdersAdapter
from .razorpay_orders import RazorpayOrdersAdapter
from .stripe_checkout import StripeCheckoutAdapter

ADAPTERS: Dict[str, Type[GatewayAdapter]] = {
    StripeCheckoutAdapter.gateway: StripeCheckoutAdapter,
    RazorpayOrdersAdapter.gateway: RazorpayOrdersAdapter,
    PayPalOrdersAdapter.gateway: PayPalOrdersAdapter,
}


def build_adapter(gateway: str, **kwargs) -> GatewayAdapter:
    try:
        adapter_class = ADAPTERS[gateway]
    except KeyError:
        raise ValidationError(f"Unknown gateway: {gateway}")
    return adapter_class(**kwargs)


__all__ = [
    "ADAPTERS",
    "AssumedPending",
    "CheckoutContext",
    "Confirmation",
    "Confirmed",
    "CreatedOrder",
    "GatewayAdapter",
    "PayPalOrdersAdapter",
    "ProviderOrder",
    "RazorpayOrdersAdapter",
    "StripeCheckoutAdapter",
    "build_adapter",
]
