"""
Billing services.

Services:
    CheckoutService: Checkout and billing-portal sessions
    SubscriptionService: Subscription status, cancel, resume, customer overview

Both take the StripeAdapter in their constructor.
"""

from billing.services.checkout import CheckoutRequest, CheckoutService
from billing.services.subscriptions import SubscriptionService

__all__ = [
    "CheckoutRequest",
    "CheckoutService",
    "SubscriptionService",
]
