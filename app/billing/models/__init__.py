"""
Billing models.

Models:
    Customer: Link between a local user and a Stripe Customer
    Subscription: Mirror of a Stripe Subscription
    Invoice: Mirror of a Stripe Invoice
    Payment: One-time payment made through Checkout
    WebhookEvent: Stored webhook for idempotent processing

Usage:
    from billing.models import Customer, Subscription, WebhookEvent
"""

from billing.models.customer import Customer
from billing.models.invoice import Invoice
from billing.models.payment import Payment
from billing.models.subscription import Subscription
from billing.models.webhook_event import MAX_WEBHOOK_RETRIES, WebhookEvent

__all__ = [
    "Customer",
    "Invoice",
    "MAX_WEBHOOK_RETRIES",
    "Payment",
    "Subscription",
    "WebhookEvent",
]
