"""
Run one stored WebhookEvent through its handler.

Shared by the webhook view (inline mode) and the Celery task (async mode)
so both record the same status transitions.

Usage:
    from billing.webhooks.processing import process_event

    try:
        process_event(webhook_event)
    except Exception:
        return HttpResponse("Processing failed", status=500)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import transaction

if TYPE_CHECKING:
    from core.services import ServiceResult

    from billing.models import WebhookEvent


logger = logging.getLogger(__name__)


class WebhookHandlerFailure(Exception):
    """A handler returned a failed ServiceResult."""

    def __init__(self, error: str | None, error_code: str | None = None):
        self.error = error or "Handler failed"
        self.error_code = error_code
        super().__init__(self.error)


def process_event(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a stored event and record the outcome.

    Steps:
        1. mark_processing() (increments retry_count) and save
        2. dispatch_webhook() inside a transaction
        3. mark_processed() on success, mark_failed() otherwise

    Exceptions from the handler are re-raised after the event is marked
    failed, so the caller can answer non-2xx or let Celery retry.

    Raises:
        WebhookHandlerFailure: Handler returned a failed result
        Exception: Whatever the handler raised
    """
    from billing.webhooks.handlers import dispatch_webhook

    webhook_event.mark_processing()
    webhook_event.save(update_fields=["status", "retry_count", "updated_at"])

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)
            if not result.success:
                raise WebhookHandlerFailure(result.error, result.error_code)
    except Exception as e:
        webhook_event.mark_failed(str(e))
        webhook_event.save(update_fields=["status", "error_message", "updated_at"])
        logger.error(
            f"Webhook processing failed: {type(e).__name__}",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "event_type": webhook_event.event_type,
                "retry_count": webhook_event.retry_count,
            },
            exc_info=True,
        )
        raise

    webhook_event.mark_processed()
    webhook_event.save(update_fields=["status", "processed_at", "error_message", "updated_at"])

    logger.info(
        "Webhook processed",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "event_type": webhook_event.event_type,
        },
    )
    return result
