"""
Stripe API adapter for billing operations.

This module provides the StripeAdapter class which wraps every outbound
Stripe call the billing app makes, with consistent error translation and
structured logging.

The adapter holds an explicitly constructed ``stripe.StripeClient``; it
never touches the SDK's module-level globals. One instance is built at
startup by ``BillingConfig.ready()`` and handed to services and views.

Features:
- Configurable timeout and network retries on the injected client
- Automatic error translation to billing exceptions
- Structured logging with timing metrics

Configuration (via settings, read by from_settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: SDK network retries (default: 3)
- STRIPE_API_VERSION: Pinned API version (default: SDK default)

Usage:
    from billing.adapters import CreateCheckoutSessionParams, StripeAdapter

    adapter = StripeAdapter.from_settings()
    session = adapter.create_checkout_session(
        CreateCheckoutSessionParams(
            customer_id="cus_xxx",
            price_id="price_xxx",
            mode="payment",
            success_url="https://example.com/ok",
            cancel_url="https://example.com/cancel",
        )
    )
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

from billing.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeConfigError,
    StripeInvalidRequestError,
    StripeRateLimitError,
)

if TYPE_CHECKING:
    from typing import NoReturn


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreateCustomerParams:
    """
    Parameters for creating a Stripe Customer.

    Attributes:
        email: Customer email
        name: Display name (optional)
        metadata: Key-value pairs, carries the local userId
    """

    email: str
    name: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class CustomerResult:
    id: str
    email: str | None = None
    name: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class CreateCheckoutSessionParams:
    """
    Parameters for creating a Stripe Checkout Session.

    Attributes:
        customer_id: Stripe Customer ID (cus_xxx)
        price_id: Stripe Price ID for the single line item
        mode: 'payment' or 'subscription'
        success_url: Redirect after successful checkout
        cancel_url: Redirect when the user backs out
        metadata: Session metadata (userId, customerId, ...)
        subscription_data: Subscription mode only (trial, metadata)
        allow_promotion_codes: Show the promotion code field
    """

    customer_id: str
    price_id: str
    mode: str
    success_url: str
    cancel_url: str
    metadata: dict[str, str] = field(default_factory=dict)
    subscription_data: dict[str, Any] | None = None
    allow_promotion_codes: bool = True

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if not self.price_id:
            raise ValueError("price_id is required")
        if self.mode not in ("payment", "subscription"):
            raise ValueError("mode must be 'payment' or 'subscription'")
        if self.subscription_data and self.mode != "subscription":
            raise ValueError("subscription_data requires subscription mode")


@dataclass
class CheckoutSessionResult:
    id: str
    url: str | None
    mode: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class PortalSessionResult:
    id: str
    url: str


@dataclass
class SubscriptionResult:
    """
    Result from Stripe Subscription operations.

    Attributes:
        id: Subscription ID (sub_xxx)
        status: Stripe subscription status
        cancel_at_period_end: Whether it ends with the current period
        raw_response: Full Stripe response dict (for debugging)
    """

    id: str
    status: str
    cancel_at_period_end: bool = False
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    Wraps one injected StripeClient. Stateless apart from that client and
    the webhook secret, so a single instance is shared across threads and
    Celery workers.

    Usage:
        adapter = StripeAdapter(client=stripe.StripeClient("sk_test_..."),
                                webhook_secret="whsec_...")
        customer = adapter.create_customer(CreateCustomerParams(email="a@b.c"))
    """

    def __init__(self, client: stripe.StripeClient, webhook_secret: str = ""):
        self.client = client
        self.webhook_secret = webhook_secret

    # =========================================================================
    # Configuration
    # =========================================================================

    @classmethod
    def from_settings(cls) -> StripeAdapter:
        """Build the adapter and its client from Django settings."""
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        client = stripe.StripeClient(
            settings.STRIPE_SECRET_KEY or "sk_test_unconfigured",
            http_client=stripe.RequestsClient(timeout=timeout),
            max_network_retries=getattr(settings, "STRIPE_MAX_RETRIES", 3),
            stripe_version=getattr(settings, "STRIPE_API_VERSION", None),
        )
        return cls(client=client, webhook_secret=settings.STRIPE_WEBHOOK_SECRET)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def _call(self, operation: str, log_context: dict[str, Any], func, *args) -> Any:
        """
        Run one Stripe call with timing logs and error translation.
        """
        logger = self.get_logger()
        log_context = {"operation": operation, **log_context}

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            response = func(*args)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "stripe_id": getattr(response, "id", None),
                "duration_ms": duration_ms,
            },
        )
        return response

    # =========================================================================
    # Core Operations
    # =========================================================================

    def create_customer(self, params: CreateCustomerParams) -> CustomerResult:
        """
        Create a Stripe Customer.

        Raises:
            StripeInvalidRequestError: Invalid parameters
            StripeAPIUnavailableError: Stripe service unavailable
        """
        request: dict[str, Any] = {"email": params.email, "metadata": params.metadata}
        if params.name:
            request["name"] = params.name

        customer = self._call(
            "create_customer",
            {"user_id": params.metadata.get("userId")},
            self.client.v1.customers.create,
            request,
        )
        return CustomerResult(
            id=customer.id,
            email=customer.email,
            name=customer.name,
            raw_response=customer.to_dict(),
        )

    def create_checkout_session(self, params: CreateCheckoutSessionParams) -> CheckoutSessionResult:
        """
        Create a Checkout Session with a single line item.

        Raises:
            StripeInvalidRequestError: Unknown price or customer
            StripeAPIUnavailableError: Stripe service unavailable
        """
        request: dict[str, Any] = {
            "customer": params.customer_id,
            "mode": params.mode,
            "payment_method_types": ["card"],
            "line_items": [{"price": params.price_id, "quantity": 1}],
            "success_url": params.success_url,
            "cancel_url": params.cancel_url,
            "metadata": params.metadata,
            "allow_promotion_codes": params.allow_promotion_codes,
        }
        if params.subscription_data:
            request["subscription_data"] = params.subscription_data

        session = self._call(
            "create_checkout_session",
            {
                "customer_id": params.customer_id,
                "price_id": params.price_id,
                "mode": params.mode,
            },
            self.client.v1.checkout.sessions.create,
            request,
        )
        return CheckoutSessionResult(
            id=session.id,
            url=session.url,
            mode=session.mode,
            raw_response=session.to_dict(),
        )

    def create_portal_session(self, customer_id: str, return_url: str) -> PortalSessionResult:
        session = self._call(
            "create_portal_session",
            {"customer_id": customer_id},
            self.client.v1.billing_portal.sessions.create,
            {"customer": customer_id, "return_url": return_url},
        )
        return PortalSessionResult(id=session.id, url=session.url)

    def update_subscription(
        self, subscription_id: str, cancel_at_period_end: bool
    ) -> SubscriptionResult:
        """
        Schedule (True) or unschedule (False) cancellation at period end.

        Raises:
            StripeInvalidRequestError: Subscription unknown or already canceled
            StripeAPIUnavailableError: Stripe service unavailable
        """
        subscription = self._call(
            "update_subscription",
            {
                "subscription_id": subscription_id,
                "cancel_at_period_end": cancel_at_period_end,
            },
            self.client.v1.subscriptions.update,
            subscription_id,
            {"cancel_at_period_end": cancel_at_period_end},
        )
        return self._subscription_result(subscription)

    def cancel_subscription(self, subscription_id: str) -> SubscriptionResult:
        """Cancel a subscription immediately."""
        subscription = self._call(
            "cancel_subscription",
            {"subscription_id": subscription_id},
            self.client.v1.subscriptions.cancel,
            subscription_id,
        )
        return self._subscription_result(subscription)

    @staticmethod
    def _subscription_result(subscription: Any) -> SubscriptionResult:
        return SubscriptionResult(
            id=subscription.id,
            status=subscription.status,
            cancel_at_period_end=bool(subscription.cancel_at_period_end),
            raw_response=subscription.to_dict(),
        )

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(self, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Args:
            payload: Raw webhook payload bytes
            signature: Stripe-Signature header value

        Returns:
            Parsed event data dict

        Raises:
            StripeInvalidRequestError: Invalid signature
        """
        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                self.webhook_secret,
            )
            return event.to_dict()
        except stripe.SignatureVerificationError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            )

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> NoReturn:
        """
        Translate Stripe exceptions to billing exceptions.

        Args:
            error: The Stripe exception
            log_context: Logging context dict
            duration_ms: Operation duration for logging

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInvalidRequestError: Invalid request parameters
            StripeRateLimitError: Rate limited
            StripeAPIUnavailableError: API unavailable
            StripeConfigError: API key rejected
        """
        logger = cls.get_logger()

        # Add timing to context
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            ) from error

        elif isinstance(error, stripe.InvalidRequestError):
            # Invalid parameters or resource not found
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise StripeInvalidRequestError(
                str(error.user_message or error),
                stripe_code=error.code,
            ) from error

        elif isinstance(error, stripe.RateLimitError):
            logger.warning(
                "Rate limited by Stripe",
                extra=log_context,
            )
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        elif isinstance(error, stripe.APIConnectionError):
            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        elif isinstance(error, stripe.AuthenticationError):
            # Invalid API key - permanent, operational issue
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeConfigError(
                "Payment provider is misconfigured",
                stripe_code="authentication_error",
            ) from error

        elif isinstance(error, stripe.APIError):
            logger.error(
                "Stripe API error",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        else:
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                f"Unexpected Stripe error: {error}",
                stripe_code="unknown_error",
            ) from error
