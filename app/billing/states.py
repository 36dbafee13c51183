"""
Status enums for billing models.

These are Django TextChoices for database storage and admin integration.
Values match Stripe's own status strings, so a provider payload can be
written to the database without translation.

Stripe is the source of truth for subscription, invoice and payment status:
local rows mirror whatever the latest event says (last write wins), so
there are no local transition guards.

Webhook processing:
    pending → processing → processed
    pending → processing → failed → processing (retry)
"""

from django.db import models


class SubscriptionStatus(models.TextChoices):
    """
    Stripe subscription statuses.

    ACTIVE and TRIALING are "active-like": a subscription in either status
    is treated as the customer's current subscription.
    """

    ACTIVE = "active", "Active"
    CANCELED = "canceled", "Canceled"
    INCOMPLETE = "incomplete", "Incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired", "Incomplete Expired"
    PAST_DUE = "past_due", "Past Due"
    PAUSED = "paused", "Paused"
    TRIALING = "trialing", "Trialing"
    UNPAID = "unpaid", "Unpaid"

    @classmethod
    def active_statuses(cls) -> list[str]:
        """Statuses that count as a live subscription."""
        return [cls.ACTIVE, cls.TRIALING]


class PaymentStatus(models.TextChoices):
    """Stripe PaymentIntent statuses, plus the terminal ``failed`` marker."""

    SUCCEEDED = "succeeded", "Succeeded"
    PENDING = "pending", "Pending"
    FAILED = "failed", "Failed"
    CANCELED = "canceled", "Canceled"
    PROCESSING = "processing", "Processing"
    REQUIRES_ACTION = "requires_action", "Requires Action"
    REQUIRES_CAPTURE = "requires_capture", "Requires Capture"
    REQUIRES_CONFIRMATION = "requires_confirmation", "Requires Confirmation"
    REQUIRES_PAYMENT_METHOD = "requires_payment_method", "Requires Payment Method"


class InvoiceStatus(models.TextChoices):
    """Stripe invoice statuses."""

    DRAFT = "draft", "Draft"
    OPEN = "open", "Open"
    PAID = "paid", "Paid"
    UNCOLLECTIBLE = "uncollectible", "Uncollectible"
    VOID = "void", "Void"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for stored webhook events.

    PENDING: Stored, not yet handled
    PROCESSING: A handler is running (or a worker died mid-way)
    PROCESSED: Handler finished; redeliveries are acknowledged without work
    FAILED: Handler raised or returned failure; eligible for retry
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


class CheckoutMode(models.TextChoices):
    """Stripe Checkout session modes used by this app."""

    PAYMENT = "payment", "One-time payment"
    SUBSCRIPTION = "subscription", "Subscription"
