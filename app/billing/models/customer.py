"""
Customer model linking a local user to a Stripe Customer.

A Customer row is created the first time a user starts a checkout
(CheckoutService.get_or_create_customer). Webhooks never create one: a
Stripe customer made outside this application cannot be tied to a local
user without metadata, so it is logged and ignored.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import MetadataMixin
from core.models import BaseModel

from billing.managers import CustomerQuerySet


class Customer(MetadataMixin, BaseModel):
    """
    Billing identity of a user.

    Invariants:
        - At most one Customer per user (OneToOne)
        - stripe_customer_id is globally unique

    Fields:
        user: Owning user
        stripe_customer_id: Stripe Customer ID (cus_xxx)
        email: Email sent to Stripe at creation time
        name: Display name sent to Stripe at creation time
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="billing_customer",
        help_text="User who owns this billing customer",
    )

    stripe_customer_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Customer ID (cus_xxx)",
    )

    email = models.EmailField(
        blank=True,
        default="",
        help_text="Customer email as registered with Stripe",
    )

    name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Customer display name as registered with Stripe",
    )

    objects = CustomerQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Customer"
        verbose_name_plural = "Customers"

    def __str__(self) -> str:
        return f"Customer({self.stripe_customer_id}, user={self.user_id})"
