"""
Store-adapter querysets for billing models.

Every billing row is reachable by two keys: the local numeric id and the
Stripe id (cus_/sub_/in_/pi_). Webhook handlers only ever know the Stripe
id, so lookups and updates keyed by it live here instead of being
re-spelled as ad-hoc filters in each handler.

Conventions:
    find_by_*     -> single instance or None (never raises DoesNotExist)
    find_*_by_customer_id -> queryset, newest first
    update_by_*   -> number of rows updated; 0 when no row matches

``update_by_*`` are blind bulk updates: they never check existence first,
so a missing row is a silent no-op rather than an error.

Usage:
    customer = Customer.objects.find_by_stripe_customer_id("cus_123")
    Subscription.objects.update_by_stripe_subscription_id(
        "sub_123", status=SubscriptionStatus.PAST_DUE
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.utils import timezone

from core.managers import BaseQuerySet

from billing.states import SubscriptionStatus, WebhookEventStatus

if TYPE_CHECKING:
    from datetime import datetime

    from billing.models import Customer, Invoice, Payment, Subscription


class _StripeKeyedQuerySet(BaseQuerySet):
    """Shared find/update helpers for querysets keyed by a Stripe id field."""

    def _find_by(self, field_name: str, value: str | None):
        if not value:
            return None
        return self.filter(**{field_name: value}).first()

    def _update_by(self, field_name: str, value: str, fields: dict[str, Any]) -> int:
        # QuerySet.update() skips auto_now, so updated_at is set explicitly
        fields.setdefault("updated_at", timezone.now())
        return self.filter(**{field_name: value}).update(**fields)


class CustomerQuerySet(_StripeKeyedQuerySet):
    def find_by_stripe_customer_id(self, stripe_customer_id: str | None) -> Customer | None:
        return self._find_by("stripe_customer_id", stripe_customer_id)

    def find_by_user_id(self, user_id: int) -> Customer | None:
        return self.filter(user_id=user_id).first()


class SubscriptionQuerySet(_StripeKeyedQuerySet):
    def active(self) -> SubscriptionQuerySet:
        """Subscriptions in an active-like status (active or trialing)."""
        return self.filter(status__in=SubscriptionStatus.active_statuses())

    def find_by_stripe_subscription_id(
        self, stripe_subscription_id: str | None
    ) -> Subscription | None:
        return self._find_by("stripe_subscription_id", stripe_subscription_id)

    def find_by_customer_id(self, customer_id: int) -> SubscriptionQuerySet:
        return self.filter(customer_id=customer_id).newest()

    def find_active_by_customer_id(self, customer_id: int) -> Subscription | None:
        """The customer's current subscription: newest active-like row."""
        return self.find_by_customer_id(customer_id).active().first()

    def update_by_stripe_subscription_id(
        self, stripe_subscription_id: str, **fields: Any
    ) -> int:
        return self._update_by("stripe_subscription_id", stripe_subscription_id, fields)


class InvoiceQuerySet(_StripeKeyedQuerySet):
    def find_by_stripe_invoice_id(self, stripe_invoice_id: str | None) -> Invoice | None:
        return self._find_by("stripe_invoice_id", stripe_invoice_id)

    def find_by_customer_id(self, customer_id: int) -> InvoiceQuerySet:
        return self.filter(customer_id=customer_id).newest()

    def update_by_stripe_invoice_id(self, stripe_invoice_id: str, **fields: Any) -> int:
        return self._update_by("stripe_invoice_id", stripe_invoice_id, fields)


class PaymentQuerySet(_StripeKeyedQuerySet):
    def find_by_payment_intent_id(self, payment_intent_id: str | None) -> Payment | None:
        return self._find_by("stripe_payment_intent_id", payment_intent_id)

    def find_by_customer_id(self, customer_id: int) -> PaymentQuerySet:
        return self.filter(customer_id=customer_id).newest()

    def update_by_payment_intent_id(self, payment_intent_id: str, **fields: Any) -> int:
        return self._update_by("stripe_payment_intent_id", payment_intent_id, fields)


class WebhookEventQuerySet(BaseQuerySet):
    def retryable(self, max_retries: int) -> WebhookEventQuerySet:
        """Failed events that have not used up their attempts, oldest first."""
        return self.filter(
            status=WebhookEventStatus.FAILED,
            retry_count__lt=max_retries,
        ).oldest()

    def stale_pending(self, older_than: datetime) -> WebhookEventQuerySet:
        """Events never picked up (queueing failed), oldest first."""
        return self.filter(
            status=WebhookEventStatus.PENDING,
            created_at__lt=older_than,
        ).oldest()

    def stuck(self, older_than: datetime) -> WebhookEventQuerySet:
        """Events left in PROCESSING since before ``older_than``."""
        return self.filter(
            status=WebhookEventStatus.PROCESSING,
            updated_at__lt=older_than,
        )

    def processed_before(self, cutoff: datetime) -> WebhookEventQuerySet:
        return self.filter(
            status=WebhookEventStatus.PROCESSED,
            processed_at__lt=cutoff,
        )
