"""
Business event recording for billing.

Webhook handlers and billing services call ``record_business_event`` after
a successful state change. Recording is best-effort: it never raises, and a
failure is logged at warning instead of reaching the caller.

Sinks (settings.BILLING_ANALYTICS_SINK):
    log:   one structured info record on the ``billing.analytics`` logger
    cache: the log record, plus a per-type daily counter in the Django cache

Usage:
    from billing.analytics import BusinessEventType, record_business_event

    record_business_event(
        BusinessEventType.SUBSCRIPTION_CREATED,
        {"customerId": customer.id, "subscriptionId": "sub_123"},
    )

    # Cache sink only
    get_event_count(BusinessEventType.PAYMENT_SUCCEEDED)
"""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.cache import cache
from django.db import models
from django.utils import timezone

if TYPE_CHECKING:
    from typing import Any


logger = logging.getLogger(__name__)

COUNTER_KEY_PREFIX = "analytics"
COUNTER_TTL_SECONDS = 90 * 24 * 60 * 60

SINK_LOG = "log"
SINK_CACHE = "cache"


class BusinessEventType(models.TextChoices):
    """Billing business events."""

    CHECKOUT_STARTED = "checkout.started", "Checkout Started"
    PAYMENT_SUCCEEDED = "payment.succeeded", "Payment Succeeded"
    PAYMENT_FAILED = "payment.failed", "Payment Failed"
    SUBSCRIPTION_CREATED = "subscription.created", "Subscription Created"
    SUBSCRIPTION_UPDATED = "subscription.updated", "Subscription Updated"
    SUBSCRIPTION_CANCELED = "subscription.canceled", "Subscription Canceled"
    SUBSCRIPTION_RESUMED = "subscription.resumed", "Subscription Resumed"
    SUBSCRIPTION_ENDED = "subscription.ended", "Subscription Ended"


def _counter_key(event_type: str, day: date) -> str:
    return f"{COUNTER_KEY_PREFIX}:{event_type}:{day.isoformat()}"


def _increment_counter(key: str) -> int:
    # add() never overwrites an existing count
    cache.add(key, 0, timeout=COUNTER_TTL_SECONDS)
    return cache.incr(key)


def record_business_event(
    event_type: str,
    data: dict[str, Any],
    metadata: dict[str, Any] | None = None,
) -> None:
    """
    Record a billing business event. Never raises.

    Args:
        event_type: A BusinessEventType value
        data: Event payload (ids, amounts, statuses)
        metadata: Optional request context (user id, request id)
    """
    if not getattr(settings, "BILLING_ANALYTICS_ENABLED", True):
        return

    event_type = str(event_type)
    try:
        logger.info(
            f"Business event: {event_type}",
            extra={
                "event_type": event_type,
                "event_data": data,
                "event_metadata": metadata or {},
                "timestamp_ms": int(time.time() * 1000),
            },
        )

        if getattr(settings, "BILLING_ANALYTICS_SINK", SINK_LOG) == SINK_CACHE:
            _increment_counter(_counter_key(event_type, timezone.localdate()))
    except Exception as e:
        logger.warning(
            f"Failed to record business event {event_type}: {type(e).__name__}",
            extra={"event_type": event_type, "error": str(e)},
        )


def get_event_count(event_type: str, day: date | None = None) -> int:
    """
    Number of ``event_type`` events recorded on ``day`` (default today).

    Only meaningful with the cache sink; always 0 otherwise.
    """
    day = day or timezone.localdate()
    return cache.get(_counter_key(str(event_type), day), 0)
