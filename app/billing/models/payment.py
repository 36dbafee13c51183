"""
Payment model for one-time purchases made through Stripe Checkout.

Created by checkout.session.completed in payment mode; its status is
afterwards refreshed by payment_intent.succeeded/payment_failed.
Subscription charges are tracked as Invoices, not Payments.
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import MetadataMixin
from core.models import BaseModel

from billing.managers import PaymentQuerySet
from billing.states import PaymentStatus


class Payment(MetadataMixin, BaseModel):
    """
    A one-time payment.

    Neither Stripe id is unique: Checkout can be retried against the same
    PaymentIntent, and intents created outside Checkout have no session.
    """

    customer = models.ForeignKey(
        "billing.Customer",
        on_delete=models.CASCADE,
        related_name="payments",
        help_text="Customer who paid",
    )

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )

    stripe_checkout_session_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe Checkout Session ID (cs_xxx)",
    )

    amount = models.PositiveIntegerField(
        default=0,
        help_text="Amount in smallest currency unit",
    )

    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code (lowercase)",
    )

    status = models.CharField(
        max_length=30,
        choices=PaymentStatus.choices,
        db_index=True,
        help_text="Stripe PaymentIntent status",
    )

    description = models.CharField(
        max_length=500,
        blank=True,
        default="",
    )

    objects = PaymentQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"

    def __str__(self) -> str:
        return f"Payment({self.pk}, {self.amount} {self.currency}, {self.status})"
