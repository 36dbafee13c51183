"""
Celery tasks for billing webhooks.

Tasks:
- Processing Stripe webhook events (when BILLING_WEBHOOK_ASYNC is on)
- Retrying failed or never-queued webhook events
- Resetting events a crashed worker left in PROCESSING
- Deleting processed events past the retention window

Usage:
    from billing.tasks import process_webhook_event

    # Queue a webhook for async processing
    process_webhook_event.delay(webhook_event.id)
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.utils import timezone

from billing.models import MAX_WEBHOOK_RETRIES, WebhookEvent
from billing.webhooks.processing import WebhookHandlerFailure, process_event

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

RETRY_BATCH_SIZE = 100
STUCK_PROCESSING_THRESHOLD_MINUTES = 30


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: int) -> dict:
    """
    Run one stored Stripe event through its handler on a worker.

    This task:
    1. Loads the WebhookEvent (a missing row is reported, not retried)
    2. Skips events another delivery already processed
    3. Runs it through process_event (status bookkeeping + dispatch)

    Args:
        webhook_event_id: Primary key of the WebhookEvent to process

    Returns:
        Dict with processing result status

    Raises:
        Exception: Re-raised to trigger Celery retry mechanism
    """
    logger.info(
        "Processing webhook event",
        extra={"webhook_event_id": webhook_event_id},
    )

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": webhook_event_id},
        )
        return {"status": "not_found", "webhook_event_id": webhook_event_id}

    # Redelivered events may already be done
    if webhook_event.is_processed:
        logger.info(
            "WebhookEvent already processed, skipping",
            extra={
                "webhook_event_id": webhook_event_id,
                "stripe_event_id": webhook_event.stripe_event_id,
            },
        )
        return {
            "status": "already_processed",
            "webhook_event_id": webhook_event_id,
        }

    try:
        process_event(webhook_event)
    except WebhookHandlerFailure as e:
        # Handler reported a failure result; retry_failed_webhooks decides
        # whether it gets another attempt
        return {
            "status": "handler_failed",
            "webhook_event_id": webhook_event_id,
            "error": e.error,
        }

    return {
        "status": "processed",
        "webhook_event_id": webhook_event_id,
        "stripe_event_id": webhook_event.stripe_event_id,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Re-queue events that still need processing.

    Re-queues failed webhooks that haven't exceeded max retries, plus
    pending ones that were never queued (broker outage at receipt time).

    Scheduled via celery-beat every 5 minutes.

    Returns:
        Dict with count of webhooks queued for retry
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)
    candidates = list(WebhookEvent.objects.retryable(MAX_WEBHOOK_RETRIES)[:RETRY_BATCH_SIZE])
    remaining = RETRY_BATCH_SIZE - len(candidates)
    if remaining > 0:
        candidates += list(WebhookEvent.objects.stale_pending(threshold)[:remaining])

    queued_count = 0
    for webhook in candidates:
        try:
            process_webhook_event.delay(webhook.id)
            queued_count += 1
            logger.info(
                "Queued webhook for retry",
                extra={
                    "webhook_event_id": webhook.id,
                    "stripe_event_id": webhook.stripe_event_id,
                    "status": webhook.status,
                    "retry_count": webhook.retry_count,
                },
            )
        except Exception as e:
            logger.error(
                f"Failed to queue webhook for retry: {e}",
                extra={"webhook_event_id": webhook.id},
            )

    logger.info(
        f"Queued {queued_count} webhooks for retry",
        extra={"queued_count": queued_count},
    )

    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Reset events stuck in PROCESSING.

    Webhooks left in PROCESSING for too long (worker crashed mid-way) are
    reset to FAILED so retry_failed_webhooks can pick them up.

    Returns:
        Dict with count of webhooks reset
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)

    reset_count = 0
    for webhook in WebhookEvent.objects.stuck(threshold):
        stuck_since = webhook.updated_at
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save(update_fields=["status", "error_message", "updated_at"])
        reset_count += 1
        logger.warning(
            "Stuck webhook reset to failed",
            extra={
                "webhook_event_id": webhook.id,
                "stripe_event_id": webhook.stripe_event_id,
                "stuck_since": stuck_since.isoformat(),
            },
        )

    if reset_count > 0:
        logger.info(
            f"Reset {reset_count} stuck webhooks",
            extra={"reset_count": reset_count},
        )

    return {"reset_count": reset_count}


@shared_task
def cleanup_old_webhooks(days: int = 90) -> dict:
    """
    Delete processed events older than the retention window.

    Only successfully processed events are deleted; failed ones are kept
    for debugging.

    Args:
        days: Delete processed webhooks older than this many days

    Returns:
        Dict with count of webhooks deleted
    """
    cutoff = timezone.now() - timedelta(days=days)

    deleted_count, _ = WebhookEvent.objects.processed_before(cutoff).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old webhook events",
            extra={
                "deleted_count": deleted_count,
                "cutoff_date": cutoff.isoformat(),
            },
        )

    return {"deleted_count": deleted_count}
