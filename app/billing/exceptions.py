"""
Billing-specific exceptions.

Exception Hierarchy:
    BillingError (base for billing domain)
    ├── CustomerNotFoundError - User has no billing customer yet
    ├── NoActiveSubscriptionError - Cancel requested without a live subscription
    ├── SubscriptionAlreadyActiveError - Subscription checkout while subscribed
    ├── NoResumableSubscriptionError - Resume requested with nothing scheduled to cancel
    ├── MalformedPayloadError - Webhook payload missing a required field
    └── StripeError - Base for all outbound Stripe call failures
        ├── StripeCardDeclinedError - Card declined (permanent)
        ├── StripeInvalidRequestError - Invalid request params (permanent)
        ├── StripeConfigError - Bad API key or webhook secret (permanent)
        ├── StripeRateLimitError - Rate limited (transient)
        └── StripeAPIUnavailableError - Network or Stripe 5xx (transient)

Each class carries the HTTP status the REST layer answers with, so views
only need ``Response(e.to_dict(), status=e.status_code)``.

Usage:
    from billing.exceptions import CustomerNotFoundError

    customer = Customer.objects.find_by_user_id(user.id)
    if not customer:
        raise CustomerNotFoundError(
            "No billing customer for this user",
            details={"user_id": user.id},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Billing Domain Exceptions
# =============================================================================


class BillingError(BaseApplicationError):
    """
    Base exception for all billing operations.

    Example:
        try:
            SubscriptionService(adapter).cancel(request.user)
        except BillingError as e:
            return Response(e.to_dict(), status=e.status_code)
    """

    default_error_code: str = "BILLING_ERROR"
    status_code: int = 400


class CustomerNotFoundError(BillingError):
    """Raised when the user has never been through checkout."""

    default_error_code: str = "CUSTOMER_NOT_FOUND"
    status_code: int = 404


class NoActiveSubscriptionError(BillingError):
    default_error_code: str = "NO_ACTIVE_SUBSCRIPTION"
    status_code: int = 400


class SubscriptionAlreadyActiveError(BillingError):
    """
    Raised when starting a subscription checkout while one is live.

    Plan changes go through the billing portal instead.
    """

    default_error_code: str = "SUBSCRIPTION_ALREADY_ACTIVE"
    status_code: int = 400


class NoResumableSubscriptionError(BillingError):
    default_error_code: str = "NO_RESUMABLE_SUBSCRIPTION"
    status_code: int = 400


class MalformedPayloadError(BillingError):
    """
    Raised when a webhook payload lacks a field its handler requires.

    Handlers catch this, log it at error level and acknowledge the event:
    redelivering the same payload would never succeed.

    Example:
        raise MalformedPayloadError(
            "customer.subscription.created payload missing 'id'",
            details={"field": "id"},
        )
    """

    default_error_code: str = "MALFORMED_PAYLOAD"
    status_code: int = 400

    @property
    def field_name(self) -> str | None:
        return self.details.get("field")


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(BillingError):
    """
    Base exception for all Stripe-related errors.

    Provides common attributes for Stripe error handling:
    - stripe_code: Stripe's internal error code
    - decline_code: Card decline code (if applicable)
    - is_retryable: Whether the caller may try again later
    """

    default_error_code: str = "STRIPE_ERROR"
    status_code: int = 502
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class StripeCardDeclinedError(StripeError):
    """
    Card was declined by the issuing bank.

    The message is Stripe's user-facing text, safe to show to the customer.
    """

    default_error_code: str = "PAYMENT_FAILED"
    status_code: int = 400


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe.

    Possible causes:
    - Unknown price or customer id
    - Subscription already canceled on Stripe's side
    - Invalid webhook signature (raised by verify_webhook_signature)
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"
    status_code: int = 400


class StripeConfigError(StripeError):
    """
    Stripe rejected our credentials.

    An operational problem (wrong or revoked STRIPE_SECRET_KEY), never
    the client's fault.
    """

    default_error_code: str = "STRIPE_CONFIG_ERROR"
    status_code: int = 500


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError):
    default_error_code: str = "STRIPE_RATE_LIMITED"
    status_code: int = 429
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """
    Stripe API is temporarily unavailable.

    This covers network connectivity issues and Stripe server errors (5xx).
    The SDK has already retried ``STRIPE_MAX_RETRIES`` times by the time
    this is raised.
    """

    default_error_code: str = "STRIPE_UNAVAILABLE"
    status_code: int = 502
    is_retryable: bool = True
