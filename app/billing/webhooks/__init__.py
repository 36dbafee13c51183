"""
Webhook handling for billing events from Stripe.

Webhooks are verified, stored idempotently, and reconciled against local
billing rows, inline by default or through Celery when
BILLING_WEBHOOK_ASYNC is on.

Usage:
    # In urls.py
    from billing.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""
