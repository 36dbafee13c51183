"""
Billing adapters for external services.

All outbound Stripe API calls go through StripeAdapter to get consistent
error handling and logging.

Usage:
    from billing.apps import get_stripe_adapter
    from billing.adapters import CreateCustomerParams

    customer = get_stripe_adapter().create_customer(
        CreateCustomerParams(email=user.email, metadata={"userId": str(user.id)})
    )
"""

from billing.adapters.stripe_adapter import (
    CheckoutSessionResult,
    CreateCheckoutSessionParams,
    CreateCustomerParams,
    CustomerResult,
    PortalSessionResult,
    StripeAdapter,
    SubscriptionResult,
)

__all__ = [
    "CheckoutSessionResult",
    "CreateCheckoutSessionParams",
    "CreateCustomerParams",
    "CustomerResult",
    "PortalSessionResult",
    "StripeAdapter",
    "SubscriptionResult",
]
