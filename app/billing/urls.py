"""
URL configuration for the billing app.

URL structure:
    /api/v1/billing/checkout/                  - One-time payment checkout (POST)
    /api/v1/billing/checkout/subscription/     - Subscription checkout (POST)
    /api/v1/billing/portal/                    - Billing portal session (POST)
    /api/v1/billing/subscription/              - Subscription status (GET)
    /api/v1/billing/subscription/cancel/       - Cancel subscription (POST)
    /api/v1/billing/subscription/resume/       - Resume subscription (POST)
    /api/v1/billing/customer/                  - Billing overview (GET)
    /api/v1/billing/webhooks/stripe/           - Stripe webhook endpoint (POST)
"""

from django.urls import path

from billing.views import (
    CancelSubscriptionView,
    CheckoutView,
    CustomerView,
    PortalView,
    ResumeSubscriptionView,
    SubscriptionCheckoutView,
    SubscriptionStatusView,
)
from billing.webhooks.views import stripe_webhook

app_name = "billing"

urlpatterns = [
    # Checkout
    path("checkout/", CheckoutView.as_view(), name="checkout"),
    path(
        "checkout/subscription/",
        SubscriptionCheckoutView.as_view(),
        name="subscription-checkout",
    ),
    path("portal/", PortalView.as_view(), name="portal"),
    # Subscription management
    path("subscription/", SubscriptionStatusView.as_view(), name="subscription"),
    path(
        "subscription/cancel/",
        CancelSubscriptionView.as_view(),
        name="subscription-cancel",
    ),
    path(
        "subscription/resume/",
        ResumeSubscriptionView.as_view(),
        name="subscription-resume",
    ),
    path("customer/", CustomerView.as_view(), name="customer"),
    # Webhooks (no authentication, verified by signature)
    path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
]
