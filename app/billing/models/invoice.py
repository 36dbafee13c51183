"""
Invoice model mirroring a Stripe Invoice.

Created or updated by invoice.paid and invoice.payment_failed. An invoice
that arrives before its subscription is known is stored unlinked
(subscription is null) rather than dropped.
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel

from billing.managers import InvoiceQuerySet
from billing.states import InvoiceStatus


class Invoice(BaseModel):
    """
    Local mirror of a Stripe Invoice.

    Amounts are in the smallest currency unit (cents for USD).
    """

    customer = models.ForeignKey(
        "billing.Customer",
        on_delete=models.CASCADE,
        related_name="invoices",
        help_text="Customer billed by this invoice",
    )

    subscription = models.ForeignKey(
        "billing.Subscription",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoices",
        help_text="Subscription this invoice renews, if any",
    )

    stripe_invoice_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Invoice ID (in_xxx)",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    amount_due = models.PositiveIntegerField(
        default=0,
        help_text="Amount due in smallest currency unit",
    )

    amount_paid = models.PositiveIntegerField(
        default=0,
        help_text="Amount paid in smallest currency unit",
    )

    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code (lowercase)",
    )

    status = models.CharField(
        max_length=20,
        choices=InvoiceStatus.choices,
        db_index=True,
        help_text="Stripe invoice status",
    )

    # ==========================================================================
    # Documents & Period
    # ==========================================================================

    invoice_url = models.URLField(
        max_length=2048,
        blank=True,
        default="",
        help_text="Stripe-hosted invoice page",
    )

    invoice_pdf = models.URLField(
        max_length=2048,
        blank=True,
        default="",
        help_text="Stripe-hosted invoice PDF",
    )

    period_start = models.DateTimeField(null=True, blank=True)
    period_end = models.DateTimeField(null=True, blank=True)

    objects = InvoiceQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Invoice"
        verbose_name_plural = "Invoices"

    def __str__(self) -> str:
        return f"Invoice({self.stripe_invoice_id}, {self.status})"

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID
