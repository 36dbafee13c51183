"""
Checkout and billing-portal service.

Creates Stripe Checkout and Billing Portal sessions for a user, creating
the Stripe customer (and its local Customer row) on first use.

Domain failures are raised as BillingError subclasses; the REST layer
turns them into responses.

Usage:
    from billing.apps import get_stripe_adapter
    from billing.services import CheckoutService

    service = CheckoutService(get_stripe_adapter())
    session = service.create_subscription_checkout(
        request.user,
        CheckoutRequest(price_id="price_pro_monthly"),
        base_url="https://app.example.com",
    )
    return Response({"session_id": session.id, "url": session.url}, status=201)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import IntegrityError

from core.services import BaseService

from billing.adapters import (
    CheckoutSessionResult,
    CreateCheckoutSessionParams,
    CreateCustomerParams,
    PortalSessionResult,
)
from billing.analytics import BusinessEventType, record_business_event
from billing.exceptions import CustomerNotFoundError, SubscriptionAlreadyActiveError
from billing.models import Customer, Subscription
from billing.plans import (
    CHECKOUT_URLS,
    PORTAL_RETURN_PATH,
    get_plan_by_price_id,
    get_price_config,
    get_product_by_price_id,
)
from billing.states import CheckoutMode

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

    from billing.adapters import StripeAdapter


@dataclass
class CheckoutRequest:
    """
    Validated checkout input.

    Attributes:
        price_id: Stripe price for the single line item
        success_url: Override for the post-checkout redirect
        cancel_url: Override for the back-out redirect
        metadata: Extra session metadata from the client
        trial_days: Subscription only, overrides the plan's trial length
        allow_promotion_codes: Subscription only (payment always allows them)
    """

    price_id: str
    success_url: str | None = None
    cancel_url: str | None = None
    metadata: dict[str, str] | None = None
    trial_days: int | None = None
    allow_promotion_codes: bool = True


class CheckoutService(BaseService):
    """
    Checkout flows for one-time payments and subscriptions.

    The StripeAdapter is injected so tests can pass a mock.
    """

    def __init__(self, stripe_adapter: StripeAdapter):
        self.stripe = stripe_adapter

    # =========================================================================
    # Customers
    # =========================================================================

    def get_or_create_customer(self, user: AbstractBaseUser) -> Customer:
        """
        Return the user's Customer, creating it in Stripe and locally if needed.

        The Stripe customer carries ``metadata.userId`` so it can be traced
        back to the user from the Stripe dashboard.
        """
        customer = Customer.objects.find_by_user_id(user.pk)
        if customer:
            return customer

        email = getattr(user, "email", "") or ""
        name = user.get_full_name() if hasattr(user, "get_full_name") else ""

        stripe_customer = self.stripe.create_customer(
            CreateCustomerParams(
                email=email,
                name=name or None,
                metadata={"userId": str(user.pk)},
            )
        )

        try:
            with self.atomic():
                customer = Customer.objects.create(
                    user=user,
                    stripe_customer_id=stripe_customer.id,
                    email=email,
                    name=name,
                )
        except IntegrityError:
            # A concurrent checkout linked the user first
            existing = Customer.objects.find_by_user_id(user.pk)
            if existing is None:
                raise
            self.get_logger().warning(
                "Billing customer created concurrently, keeping existing",
                extra={
                    "user_id": user.pk,
                    "customer_id": existing.id,
                    "orphaned_stripe_customer_id": stripe_customer.id,
                },
            )
            return existing

        self.get_logger().info(
            "Created billing customer",
            extra={
                "user_id": user.pk,
                "customer_id": customer.id,
                "stripe_customer_id": customer.stripe_customer_id,
            },
        )
        return customer

    # =========================================================================
    # Checkout Sessions
    # =========================================================================

    def create_payment_checkout(
        self, user: AbstractBaseUser, checkout: CheckoutRequest, base_url: str | None = None
    ) -> CheckoutSessionResult:
        """One-time payment checkout for a catalog product."""
        if not get_product_by_price_id(checkout.price_id):
            self.get_logger().warning(
                "Price ID not found in one-time product catalog",
                extra={"price_id": checkout.price_id},
            )

        customer = self.get_or_create_customer(user)
        success_url, cancel_url = self._redirect_urls(checkout, base_url)

        session = self.stripe.create_checkout_session(
            CreateCheckoutSessionParams(
                customer_id=customer.stripe_customer_id,
                price_id=checkout.price_id,
                mode=CheckoutMode.PAYMENT,
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=self._session_metadata(user, customer, checkout.metadata),
                allow_promotion_codes=True,
            )
        )

        record_business_event(
            BusinessEventType.CHECKOUT_STARTED,
            {
                "userId": user.pk,
                "checkoutSessionId": session.id,
                "priceId": checkout.price_id,
                "mode": CheckoutMode.PAYMENT.value,
            },
        )
        return session

    def create_subscription_checkout(
        self, user: AbstractBaseUser, checkout: CheckoutRequest, base_url: str | None = None
    ) -> CheckoutSessionResult:
        """
        Subscription checkout.

        Rejected while the user has an active or trialing subscription; plan
        changes go through the billing portal. A trial is only granted to
        customers that never had a subscription.

        Raises:
            SubscriptionAlreadyActiveError: User is already subscribed
        """
        existing = Customer.objects.find_by_user_id(user.pk)
        if existing:
            active = Subscription.objects.find_active_by_customer_id(existing.id)
            if active:
                raise SubscriptionAlreadyActiveError(
                    "You already have an active subscription. "
                    "Please manage it from the billing page.",
                    details={"subscription_id": active.id},
                )

        plan = get_plan_by_price_id(checkout.price_id)
        trial_days = checkout.trial_days
        if trial_days is None:
            price_config = get_price_config(checkout.price_id)
            trial_days = price_config.trial_days if price_config else None

        customer = existing or self.get_or_create_customer(user)
        success_url, cancel_url = self._redirect_urls(checkout, base_url)

        subscription_data: dict[str, Any] = {
            "metadata": {
                **(checkout.metadata or {}),
                "userId": str(user.pk),
                "customerId": str(customer.id),
            },
        }
        if trial_days and trial_days > 0:
            # Trials only for first-time subscribers
            if not Subscription.objects.find_by_customer_id(customer.id).exists():
                subscription_data["trial_period_days"] = trial_days

        session = self.stripe.create_checkout_session(
            CreateCheckoutSessionParams(
                customer_id=customer.stripe_customer_id,
                price_id=checkout.price_id,
                mode=CheckoutMode.SUBSCRIPTION,
                success_url=success_url,
                cancel_url=cancel_url,
                metadata={
                    **self._session_metadata(user, customer, checkout.metadata),
                    "priceId": checkout.price_id,
                },
                subscription_data=subscription_data,
                allow_promotion_codes=checkout.allow_promotion_codes,
            )
        )

        record_business_event(
            BusinessEventType.CHECKOUT_STARTED,
            {
                "userId": user.pk,
                "checkoutSessionId": session.id,
                "priceId": checkout.price_id,
                "mode": CheckoutMode.SUBSCRIPTION.value,
                "planName": plan.name if plan else None,
            },
        )
        return session

    # =========================================================================
    # Billing Portal
    # =========================================================================

    def create_portal_session(
        self,
        user: AbstractBaseUser,
        return_url: str | None = None,
        base_url: str | None = None,
    ) -> PortalSessionResult:
        """
        Raises:
            CustomerNotFoundError: User has never been through checkout
        """
        customer = Customer.objects.find_by_user_id(user.pk)
        if not customer:
            raise CustomerNotFoundError(
                "No billing account found. Please subscribe or make a purchase first.",
                details={"user_id": user.pk},
            )

        return self.stripe.create_portal_session(
            customer.stripe_customer_id,
            return_url or f"{self._base_url(base_url)}{PORTAL_RETURN_PATH}",
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _base_url(base_url: str | None) -> str:
        return (base_url or settings.FRONTEND_URL).rstrip("/")

    def _redirect_urls(self, checkout: CheckoutRequest, base_url: str | None) -> tuple[str, str]:
        root = self._base_url(base_url)
        return (
            checkout.success_url or f"{root}{CHECKOUT_URLS['success_path']}",
            checkout.cancel_url or f"{root}{CHECKOUT_URLS['cancel_path']}",
        )

    @staticmethod
    def _session_metadata(
        user: AbstractBaseUser, customer: Customer, extra: dict[str, str] | None
    ) -> dict[str, str]:
        # customerId is what checkout.session.completed attributes the payment
        # by, so client metadata may not override it
        return {
            **(extra or {}),
            "userId": str(user.pk),
            "customerId": str(customer.id),
        }
