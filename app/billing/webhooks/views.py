"""
Webhook endpoint view for Stripe.

The view:
1. Verifies the webhook signature
2. Creates/retrieves the WebhookEvent record (idempotent)
3. Processes the event inline, or queues it when BILLING_WEBHOOK_ASYNC is on

Inline processing answers 500 when a handler raises, which makes Stripe
redeliver the event on its own schedule. Async processing always answers
200 and leaves retries to Celery.

Usage:
    # In urls.py
    from billing.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from billing.apps import get_stripe_adapter
from billing.exceptions import StripeInvalidRequestError
from billing.models import WebhookEvent
from billing.states import WebhookEventStatus
from billing.webhooks.processing import process_event


logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and process Stripe webhook events.

    Security:
    - Signature verification prevents spoofed webhooks
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Idempotency:
    - WebhookEvent.stripe_event_id is unique
    - Already processed events return 200 without reprocessing

    Returns:
        HttpResponse with status:
        - 200: Event processed, accepted for async processing, or duplicate
        - 400: Invalid signature or payload
        - 500: Handler failed (inline mode), Stripe will redeliver

    Example Stripe-Signature header:
        t=1614556800,v1=xxx,v0=yyy
    """
    payload = request.body
    signature = request.headers.get("Stripe-Signature", "")

    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return HttpResponse("Missing signature", status=400)

    # Step 1: Verify signature
    try:
        event_data = get_stripe_adapter().verify_webhook_signature(payload, signature)
    except StripeInvalidRequestError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error": str(e)},
        )
        return HttpResponse("Invalid signature", status=400)
    except Exception as e:
        logger.error(
            f"Unexpected error verifying webhook: {type(e).__name__}",
            exc_info=True,
        )
        return HttpResponse("Verification error", status=400)

    stripe_event_id = event_data.get("id")
    event_type = event_data.get("type")

    if not stripe_event_id or not event_type:
        logger.warning("Webhook missing required fields")
        return HttpResponse("Invalid event", status=400)

    logger.info(
        f"Received Stripe webhook: {event_type}",
        extra={
            "stripe_event_id": stripe_event_id,
            "event_type": event_type,
        },
    )

    # Step 2: Create/get WebhookEvent (idempotent)
    webhook_event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=stripe_event_id,
        defaults={
            "event_type": event_type,
            "payload": event_data,
            "status": WebhookEventStatus.PENDING,
        },
    )

    if not created:
        if webhook_event.is_processed:
            logger.info(
                "Webhook already processed, returning success",
                extra={"stripe_event_id": stripe_event_id},
            )
            return HttpResponse("Already processed", status=200)

        logger.info(
            f"Webhook already exists with status: {webhook_event.status}",
            extra={"stripe_event_id": stripe_event_id},
        )

    # Step 3: Process
    if getattr(settings, "BILLING_WEBHOOK_ASYNC", False):
        return _queue_event(webhook_event)

    try:
        process_event(webhook_event)
    except Exception:
        # process_event already logged and marked the event failed
        return HttpResponse("Processing failed", status=500)

    return HttpResponse("Processed", status=200)


def _queue_event(webhook_event: WebhookEvent) -> HttpResponse:
    try:
        from billing.tasks import process_webhook_event

        process_webhook_event.delay(webhook_event.id)
        logger.info(
            "Webhook queued for processing",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "webhook_event_id": webhook_event.id,
            },
        )
    except Exception as e:
        # retry_failed_webhooks picks up events left pending
        logger.error(
            f"Failed to queue webhook: {type(e).__name__}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
            exc_info=True,
        )

    return HttpResponse("Accepted", status=200)
