"""
Subscription model mirroring a Stripe Subscription.

Rows are created by the customer.subscription.created webhook and kept in
sync by customer.subscription.updated/deleted. Local code never decides a
status on its own except for the cancel/resume endpoints, which write the
same values Stripe will confirm moments later.

Usage:
    from billing.models import Subscription

    current = Subscription.objects.find_active_by_customer_id(customer.id)
    if current and current.is_trialing:
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import models

from core.model_mixins import MetadataMixin
from core.models import BaseModel

from billing.managers import SubscriptionQuerySet
from billing.states import SubscriptionStatus

if TYPE_CHECKING:
    from billing.plans import PlanConfig


class Subscription(MetadataMixin, BaseModel):
    """
    Local mirror of a Stripe Subscription.

    A customer may accumulate many subscriptions over time. The newest one
    in an active-like status (active or trialing) is the current one.

    Timestamps that Stripe sends as epoch seconds are stored as aware
    datetimes; any of them may be null.
    """

    # ==========================================================================
    # Ownership & Stripe References
    # ==========================================================================

    customer = models.ForeignKey(
        "billing.Customer",
        on_delete=models.CASCADE,
        related_name="subscriptions",
        help_text="Customer who owns this subscription",
    )

    stripe_subscription_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Subscription ID (sub_xxx)",
    )

    stripe_price_id = models.CharField(
        max_length=255,
        help_text="Stripe Price ID of the first subscription item (price_xxx)",
    )

    # ==========================================================================
    # Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        db_index=True,
        help_text="Stripe subscription status",
    )

    cancel_at_period_end = models.BooleanField(
        default=False,
        help_text="Whether the subscription ends when the current period ends",
    )

    # ==========================================================================
    # Billing Period
    # ==========================================================================

    current_period_start = models.DateTimeField(null=True, blank=True)
    current_period_end = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Cancellation & Trial
    # ==========================================================================

    canceled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When cancellation was requested",
    )

    ended_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the subscription stopped",
    )

    trial_start = models.DateTimeField(null=True, blank=True)
    trial_end = models.DateTimeField(null=True, blank=True)

    objects = SubscriptionQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(fields=["customer", "status"], name="billing_sub_cust_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Subscription({self.stripe_subscription_id}, {self.status})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_active(self) -> bool:
        """Active or trialing."""
        return self.status in SubscriptionStatus.active_statuses()

    @property
    def is_trialing(self) -> bool:
        return self.status == SubscriptionStatus.TRIALING

    @property
    def is_resumable(self) -> bool:
        """Scheduled to cancel at period end but not yet ended."""
        return self.cancel_at_period_end and self.is_active

    @property
    def plan(self) -> PlanConfig | None:
        """Catalog plan for this subscription's price, if it is a known one."""
        from billing.plans import get_plan_by_price_id

        return get_plan_by_price_id(self.stripe_price_id)
