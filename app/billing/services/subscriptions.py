"""
Subscription management service.

Read and manage the current user's subscription: status, cancel (now or at
period end), resume, and the customer overview shown on the billing page.

Cancel and resume call Stripe first and then write the same values locally,
so the read endpoints reflect the change before the confirming
customer.subscription.updated webhook arrives.

Usage:
    from billing.apps import get_stripe_adapter
    from billing.services import SubscriptionService

    service = SubscriptionService(get_stripe_adapter())
    result = service.cancel(request.user, immediately=False)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.utils import timezone

from core.services import BaseService

from billing.analytics import BusinessEventType, record_business_event
from billing.exceptions import (
    CustomerNotFoundError,
    NoActiveSubscriptionError,
    NoResumableSubscriptionError,
)
from billing.models import Customer, Invoice, Payment, Subscription
from billing.states import SubscriptionStatus

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

    from billing.adapters import StripeAdapter


OVERVIEW_HISTORY_LIMIT = 10


class SubscriptionService(BaseService):
    """Subscription reads and user-initiated cancel/resume."""

    def __init__(self, stripe_adapter: StripeAdapter):
        self.stripe = stripe_adapter

    def _require_customer(self, user: AbstractBaseUser) -> Customer:
        customer = Customer.objects.find_by_user_id(user.pk)
        if not customer:
            raise CustomerNotFoundError(
                "No billing account found for this user",
                details={"user_id": user.pk},
            )
        return customer

    # =========================================================================
    # Reads
    # =========================================================================

    def get_status(self, user: AbstractBaseUser) -> dict[str, Any]:
        """
        Current subscription and plan.

        The active (or trialing) subscription when there is one; otherwise
        the latest subscription with has_subscription False; otherwise nulls.
        """
        customer = Customer.objects.find_by_user_id(user.pk)
        if not customer:
            return {"has_subscription": False, "subscription": None, "plan": None}

        subscription = Subscription.objects.find_active_by_customer_id(customer.id)
        if subscription:
            return {
                "has_subscription": True,
                "subscription": subscription,
                "plan": subscription.plan,
            }

        latest = Subscription.objects.find_by_customer_id(customer.id).first()
        return {
            "has_subscription": False,
            "subscription": latest,
            "plan": latest.plan if latest else None,
        }

    def get_customer_overview(self, user: AbstractBaseUser) -> dict[str, Any]:
        """Customer, current subscription and the 10 latest payments and invoices."""
        customer = Customer.objects.find_by_user_id(user.pk)
        if not customer:
            return {
                "has_customer": False,
                "customer": None,
                "subscription": None,
                "payments": [],
                "invoices": [],
            }

        return {
            "has_customer": True,
            "customer": customer,
            "subscription": Subscription.objects.find_active_by_customer_id(customer.id),
            "payments": list(
                Payment.objects.find_by_customer_id(customer.id)[:OVERVIEW_HISTORY_LIMIT]
            ),
            "invoices": list(
                Invoice.objects.find_by_customer_id(customer.id)[:OVERVIEW_HISTORY_LIMIT]
            ),
        }

    # =========================================================================
    # Cancel / Resume
    # =========================================================================

    def cancel(self, user: AbstractBaseUser, immediately: bool = False) -> dict[str, Any]:
        """
        Cancel the active subscription, now or at the end of the period.

        Raises:
            CustomerNotFoundError: User has no billing customer
            NoActiveSubscriptionError: Nothing active to cancel
            StripeError: Stripe rejected or failed the call
        """
        customer = self._require_customer(user)
        subscription = Subscription.objects.find_active_by_customer_id(customer.id)
        if not subscription:
            raise NoActiveSubscriptionError(
                "No active subscription to cancel",
                details={"stripe_customer_id": customer.stripe_customer_id},
            )

        stripe_subscription_id = subscription.stripe_subscription_id
        now = timezone.now()

        if immediately:
            self.stripe.cancel_subscription(stripe_subscription_id)
            with self.atomic():
                Subscription.objects.update_by_stripe_subscription_id(
                    stripe_subscription_id,
                    status=SubscriptionStatus.CANCELED,
                    canceled_at=now,
                    ended_at=now,
                )
            cancel_at = None
        else:
            self.stripe.update_subscription(stripe_subscription_id, cancel_at_period_end=True)
            with self.atomic():
                Subscription.objects.update_by_stripe_subscription_id(
                    stripe_subscription_id,
                    cancel_at_period_end=True,
                    canceled_at=now,
                )
            cancel_at = subscription.current_period_end

        self.get_logger().info(
            "Subscription canceled",
            extra={
                "user_id": user.pk,
                "subscription_id": stripe_subscription_id,
                "immediately": immediately,
            },
        )
        record_business_event(
            BusinessEventType.SUBSCRIPTION_CANCELED,
            {
                "userId": user.pk,
                "subscriptionId": stripe_subscription_id,
                "immediately": immediately,
                "cancelAt": cancel_at.isoformat() if cancel_at else None,
            },
        )

        return {
            "canceled": True,
            "immediately": immediately,
            "cancel_at": cancel_at,
            "subscription_id": stripe_subscription_id,
        }

    def resume(self, user: AbstractBaseUser) -> dict[str, Any]:
        """
        Undo a scheduled cancellation.

        Raises:
            CustomerNotFoundError: User has no billing customer
            NoResumableSubscriptionError: No live subscription is scheduled to cancel
            StripeError: Stripe rejected or failed the call
        """
        customer = self._require_customer(user)
        subscription = (
            Subscription.objects.find_by_customer_id(customer.id)
            .active()
            .filter(cancel_at_period_end=True)
            .first()
        )
        if not subscription:
            raise NoResumableSubscriptionError(
                "No subscription found that can be resumed. You can only resume "
                "subscriptions that are set to cancel at the end of the billing period."
            )

        stripe_subscription_id = subscription.stripe_subscription_id
        self.stripe.update_subscription(stripe_subscription_id, cancel_at_period_end=False)
        with self.atomic():
            Subscription.objects.update_by_stripe_subscription_id(
                stripe_subscription_id,
                cancel_at_period_end=False,
                canceled_at=None,
            )

        record_business_event(
            BusinessEventType.SUBSCRIPTION_RESUMED,
            {"userId": user.pk, "subscriptionId": stripe_subscription_id},
        )

        return {
            "resumed": True,
            "subscription_id": stripe_subscription_id,
            "status": subscription.status,
            "current_period_end": subscription.current_period_end,
        }
