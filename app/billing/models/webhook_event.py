"""
WebhookEvent model for Stripe webhook event tracking.

Every verified webhook is stored before it is handled. The unique
stripe_event_id gives idempotency across Stripe's redeliveries, and the
status/retry columns let failed events be retried by a periodic task.

Usage:
    event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id="evt_1234567890",
        defaults={"event_type": "invoice.paid", "payload": event_data},
    )
    if not created and event.is_processed:
        return HttpResponse("Already processed", status=200)
"""

from __future__ import annotations

from typing import Any

from django.db import models
from django.utils import timezone

from core.models import BaseModel

from billing.managers import WebhookEventQuerySet
from billing.states import WebhookEventStatus

MAX_WEBHOOK_RETRIES = 5


class WebhookEvent(BaseModel):
    """
    A Stripe webhook event and its processing state.

    Processing Flow:
        1. Webhook arrives, Stripe signature verified
        2. get_or_create by stripe_event_id
        3. Already PROCESSED -> acknowledge, no work
        4. mark_processing(), dispatch to handler
        5. mark_processed() or mark_failed()
        6. FAILED events are retried until retry_count reaches the limit
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Stripe event type (e.g., 'customer.subscription.created')",
    )

    payload = models.JSONField(
        help_text="Full webhook payload from Stripe (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When event was successfully processed",
    )

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    objects = WebhookEventQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="billing_wh_status_created_idx"),
            models.Index(fields=["status", "retry_count"], name="billing_wh_status_retry_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.stripe_event_id}, {self.event_type})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def is_failed(self) -> bool:
        return self.status == WebhookEventStatus.FAILED

    @property
    def can_retry(self) -> bool:
        """Failed with attempts left."""
        return self.is_failed and self.retry_count < MAX_WEBHOOK_RETRIES

    # ==========================================================================
    # Status Transitions
    # ==========================================================================
    # These do not save - caller must save after calling.

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    # ==========================================================================
    # Payload Access
    # ==========================================================================

    def get_data_object(self) -> dict[str, Any]:
        """
        Return ``payload["data"]["object"]``, the Stripe object the event is about.

        Returns an empty dict when the payload does not have that shape, so
        typed decoding can report exactly which field is missing.
        """
        data = self.payload.get("data") if isinstance(self.payload, dict) else None
        data_object = data.get("object") if isinstance(data, dict) else None
        return data_object if isinstance(data_object, dict) else {}

    def get_object_id(self) -> str | None:
        return self.get_data_object().get("id")
