"""
Webhook event handlers for Stripe billing events.

This module provides a handler registry and one handler per supported
event type. Each handler reconciles local Customer/Subscription/Invoice/
Payment rows with what Stripe reports, using find-or-update semantics so
duplicate and out-of-order deliveries converge on the same state.

Outcome categories:
- Attribution failure (no local customer to link to): warning, success
- Malformed payload (required field missing): error, success
- Store failure in subscription.updated/deleted and payment_intent.*:
  error with traceback, swallowed, success
- Store failure anywhere else: propagates, so the event is marked failed
  and Stripe (or the retry task) delivers it again

Handlers that swallow store failures run their writes in a savepoint, so a
caught database error does not break the surrounding transaction.

Usage:
    from billing.webhooks.handlers import dispatch_webhook, register_handler

    # Register a custom handler
    @register_handler("custom.event")
    def handle_custom_event(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    # Dispatch an event to its handler
    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from django.db import transaction
from django.utils import timezone

from core.services import ServiceResult

from billing.analytics import BusinessEventType, record_business_event
from billing.exceptions import MalformedPayloadError
from billing.models import Customer, Invoice, Payment, Subscription, WebhookEvent
from billing.states import CheckoutMode, InvoiceStatus, PaymentStatus, SubscriptionStatus
from billing.webhooks.events import (
    CheckoutSessionEvent,
    CustomerEvent,
    InvoiceEvent,
    PaymentIntentEvent,
    SubscriptionDeletedEvent,
    SubscriptionEvent,
)


logger = logging.getLogger(__name__)

E = TypeVar("E")

CHECKOUT_PAYMENT_DESCRIPTION = "One-time payment via checkout"

# Event types the Stripe endpoint should be subscribed to. Types without a
# registered handler are acknowledged and ignored.
SUPPORTED_WEBHOOK_EVENTS = [
    "checkout.session.completed",
    "customer.created",
    "customer.updated",
    "customer.deleted",
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
    "customer.subscription.paused",
    "customer.subscription.resumed",
    "invoice.created",
    "invoice.paid",
    "invoice.payment_failed",
    "invoice.payment_succeeded",
    "invoice.finalized",
    "payment_intent.succeeded",
    "payment_intent.payment_failed",
]


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("invoice.paid")
        def handle_invoice_paid(webhook_event: WebhookEvent) -> ServiceResult:
            ...

    Args:
        event_type: The Stripe event type (e.g., "invoice.paid")

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Looks up the handler by event type and calls it. If no handler is
    registered, logs and returns success: Stripe expects a 2xx for every
    event type, recognized or not.

    No retries happen here. Exceptions raised by the handler propagate to
    the caller, which decides how the event gets redelivered.

    Args:
        webhook_event: The WebhookEvent to process

    Returns:
        ServiceResult from the handler, or success if no handler
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )

    return handler(webhook_event)


def _decode(webhook_event: WebhookEvent, event_cls: type[E]) -> E | None:
    """
    Decode the event's data object, or log and return None if malformed.
    """
    try:
        return event_cls.from_payload(webhook_event.get_data_object())
    except MalformedPayloadError as e:
        logger.error(
            f"{webhook_event.event_type}: malformed payload",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "field": e.field_name,
                "error": e.message,
            },
        )
        return None


# =============================================================================
# Checkout Handlers
# =============================================================================


@register_handler("checkout.session.completed")
def handle_checkout_session_completed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle a completed Checkout session.

    Payment mode creates the Payment row. Subscription mode writes nothing:
    customer.subscription.created owns the Subscription row, so the two
    events never race to insert it.

    Payment creation is not guarded; a store failure propagates.
    """
    session = _decode(webhook_event, CheckoutSessionEvent)
    if session is None:
        return ServiceResult.success(None)

    logger.info(
        "Processing checkout.session.completed",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "session_id": session.id,
            "mode": session.mode,
            "stripe_customer_id": session.stripe_customer_id,
        },
    )

    if session.customer_id is None:
        logger.warning(
            "No customerId in session metadata",
            extra={"session_id": session.id},
        )
        return ServiceResult.success(None)

    customer = Customer.objects.filter(pk=session.customer_id).first()
    if not customer:
        logger.warning(
            "Customer from session metadata not found",
            extra={"session_id": session.id, "customer_id": session.customer_id},
        )
        return ServiceResult.success(None)

    if session.mode == CheckoutMode.PAYMENT:
        payment = Payment.objects.create(
            customer=customer,
            stripe_checkout_session_id=session.id,
            stripe_payment_intent_id=session.payment_intent_id,
            amount=session.amount_total or 0,
            currency=session.currency or "usd",
            status=PaymentStatus.SUCCEEDED,
            description=CHECKOUT_PAYMENT_DESCRIPTION,
            metadata=session.metadata,
        )

        record_business_event(
            BusinessEventType.PAYMENT_SUCCEEDED,
            {
                "customerId": customer.id,
                "sessionId": session.id,
                "amount": session.amount_total,
            },
        )
        return ServiceResult.success(payment)

    if session.mode == CheckoutMode.SUBSCRIPTION:
        logger.info(
            "Subscription checkout completed",
            extra={"session_id": session.id, "subscription_id": session.subscription_id},
        )

    return ServiceResult.success(None)


# =============================================================================
# Customer Handlers
# =============================================================================


@register_handler("customer.created")
def handle_customer_created(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Acknowledge customer.created.

    Customers are created locally by the checkout flow before Stripe emits
    this event. A customer created outside the app has no user to link to,
    so it is logged and left alone.
    """
    stripe_customer = _decode(webhook_event, CustomerEvent)
    if stripe_customer is None:
        return ServiceResult.success(None)

    logger.info(
        "Processing customer.created",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "stripe_customer_id": stripe_customer.id,
        },
    )

    existing = Customer.objects.find_by_stripe_customer_id(stripe_customer.id)
    if existing:
        logger.info(
            "Customer already exists in database",
            extra={"stripe_customer_id": stripe_customer.id, "customer_id": existing.id},
        )
        return ServiceResult.success(existing)

    logger.warning(
        "Customer created outside the app, no user to link",
        extra={"stripe_customer_id": stripe_customer.id},
    )
    return ServiceResult.success(None)


# =============================================================================
# Subscription Handlers
# =============================================================================


@register_handler("customer.subscription.created")
def handle_subscription_created(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Create the local Subscription, or refresh it if it already exists.

    A redelivered (or late) created event for a known subscription only
    refreshes status, period and cancel flag; it never inserts twice.
    """
    subscription = _decode(webhook_event, SubscriptionEvent)
    if subscription is None:
        return ServiceResult.success(None)

    logger.info(
        "Processing customer.subscription.created",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "subscription_id": subscription.id,
            "stripe_customer_id": subscription.customer_id,
            "status": subscription.status,
        },
    )

    customer = Customer.objects.find_by_stripe_customer_id(subscription.customer_id)
    if not customer:
        logger.warning(
            "Customer not found for subscription",
            extra={
                "stripe_customer_id": subscription.customer_id,
                "subscription_id": subscription.id,
            },
        )
        return ServiceResult.success(None)

    existing = Subscription.objects.find_by_stripe_subscription_id(subscription.id)
    if existing:
        logger.info(
            "Subscription already exists, updating",
            extra={"subscription_id": subscription.id},
        )
        Subscription.objects.update_by_stripe_subscription_id(
            subscription.id,
            status=subscription.status,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
        )
        existing.refresh_from_db()
        return ServiceResult.success(existing)

    if not subscription.price_id:
        logger.error(
            "No price ID found in subscription",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "subscription_id": subscription.id,
            },
        )
        return ServiceResult.success(None)

    local = Subscription.objects.create(
        customer=customer,
        stripe_subscription_id=subscription.id,
        stripe_price_id=subscription.price_id,
        status=subscription.status,
        current_period_start=subscription.current_period_start,
        current_period_end=subscription.current_period_end,
        cancel_at_period_end=subscription.cancel_at_period_end,
        trial_start=subscription.trial_start,
        trial_end=subscription.trial_end,
        metadata=subscription.metadata,
    )

    record_business_event(
        BusinessEventType.SUBSCRIPTION_CREATED,
        {
            "customerId": customer.id,
            "subscriptionId": subscription.id,
            "priceId": subscription.price_id,
            "status": subscription.status,
        },
    )
    return ServiceResult.success(local)


def _subscription_update_fields(subscription: SubscriptionEvent) -> dict[str, Any]:
    """
    Fields written by customer.subscription.updated.

    Status and cancel flag are always written. Price, periods and the
    cancellation/trial timestamps only when the payload carries them.
    """
    fields: dict[str, Any] = {
        "status": subscription.status,
        "cancel_at_period_end": subscription.cancel_at_period_end,
    }
    optional = {
        "stripe_price_id": subscription.price_id,
        "current_period_start": subscription.current_period_start,
        "current_period_end": subscription.current_period_end,
        "canceled_at": subscription.canceled_at,
        "ended_at": subscription.ended_at,
        "trial_start": subscription.trial_start,
        "trial_end": subscription.trial_end,
    }
    fields.update({name: value for name, value in optional.items() if value is not None})
    return fields


@register_handler("customer.subscription.updated")
def handle_subscription_updated(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Blindly update the Subscription by Stripe id.

    No existence check: an update that matches no row is tolerated. Store
    failures are logged and swallowed.
    """
    subscription = _decode(webhook_event, SubscriptionEvent)
    if subscription is None:
        return ServiceResult.success(None)

    logger.info(
        "Processing customer.subscription.updated",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "subscription_id": subscription.id,
            "status": subscription.status,
        },
    )

    try:
        with transaction.atomic():
            updated = Subscription.objects.update_by_stripe_subscription_id(
                subscription.id, **_subscription_update_fields(subscription)
            )
    except Exception as e:
        logger.error(
            f"Failed to update subscription: {type(e).__name__}",
            extra={"subscription_id": subscription.id, "error": str(e)},
            exc_info=True,
        )
        return ServiceResult.success(None)

    if not updated:
        logger.info(
            "No local subscription to update",
            extra={"subscription_id": subscription.id},
        )
        return ServiceResult.success(None)

    record_business_event(
        BusinessEventType.SUBSCRIPTION_UPDATED,
        {
            "subscriptionId": subscription.id,
            "status": subscription.status,
            "cancelAtPeriodEnd": subscription.cancel_at_period_end,
        },
    )
    return ServiceResult.success(updated)


@register_handler("customer.subscription.deleted")
def handle_subscription_deleted(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Mark the Subscription canceled.

    canceled_at and ended_at fall back to now when the payload omits them.
    Store failures are logged and swallowed.
    """
    subscription = _decode(webhook_event, SubscriptionDeletedEvent)
    if subscription is None:
        return ServiceResult.success(None)

    logger.info(
        "Processing customer.subscription.deleted",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "subscription_id": subscription.id,
        },
    )

    now = timezone.now()
    try:
        with transaction.atomic():
            updated = Subscription.objects.update_by_stripe_subscription_id(
                subscription.id,
                status=SubscriptionStatus.CANCELED,
                canceled_at=subscription.canceled_at or now,
                ended_at=subscription.ended_at or now,
            )
    except Exception as e:
        logger.error(
            f"Failed to mark subscription as deleted: {type(e).__name__}",
            extra={"subscription_id": subscription.id, "error": str(e)},
            exc_info=True,
        )
        return ServiceResult.success(None)

    if not updated:
        logger.info(
            "No local subscription to cancel",
            extra={"subscription_id": subscription.id},
        )
        return ServiceResult.success(None)

    record_business_event(
        BusinessEventType.SUBSCRIPTION_ENDED,
        {"subscriptionId": subscription.id},
    )
    return ServiceResult.success(updated)


# =============================================================================
# Invoice Handlers
# =============================================================================


def _resolve_invoice_owner(
    webhook_event: WebhookEvent, invoice: InvoiceEvent
) -> tuple[Customer | None, Subscription | None]:
    """
    Local customer and (optional) subscription an invoice belongs to.

    An unknown subscription leaves the invoice unlinked; an unknown
    customer means the invoice cannot be stored at all.
    """
    if not invoice.customer_id:
        logger.warning(
            "No customer ID in invoice",
            extra={"stripe_event_id": webhook_event.stripe_event_id, "invoice_id": invoice.id},
        )
        return None, None

    customer = Customer.objects.find_by_stripe_customer_id(invoice.customer_id)
    if not customer:
        logger.warning(
            "Customer not found for invoice",
            extra={"stripe_customer_id": invoice.customer_id, "invoice_id": invoice.id},
        )
        return None, None

    subscription = Subscription.objects.find_by_stripe_subscription_id(invoice.subscription_id)
    return customer, subscription


@register_handler("invoice.paid")
def handle_invoice_paid(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Record a paid invoice.

    Existing invoice: status, amount paid and document URLs are refreshed.
    New invoice: created as paid with every field from the payload.
    Store failures propagate.
    """
    invoice = _decode(webhook_event, InvoiceEvent)
    if invoice is None:
        return ServiceResult.success(None)

    logger.info(
        "Processing invoice.paid",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "invoice_id": invoice.id,
            "stripe_customer_id": invoice.customer_id,
            "amount": invoice.amount_paid,
        },
    )

    customer, subscription = _resolve_invoice_owner(webhook_event, invoice)
    if not customer:
        return ServiceResult.success(None)

    existing = Invoice.objects.find_by_stripe_invoice_id(invoice.id)
    if existing:
        fields: dict[str, Any] = {
            "status": InvoiceStatus.PAID,
            "amount_paid": invoice.amount_paid,
        }
        if invoice.hosted_invoice_url is not None:
            fields["invoice_url"] = invoice.hosted_invoice_url
        if invoice.invoice_pdf is not None:
            fields["invoice_pdf"] = invoice.invoice_pdf
        Invoice.objects.update_by_stripe_invoice_id(invoice.id, **fields)
        existing.refresh_from_db()
        local = existing
    else:
        local = Invoice.objects.create(
            customer=customer,
            subscription=subscription,
            stripe_invoice_id=invoice.id,
            amount_due=invoice.amount_due,
            amount_paid=invoice.amount_paid,
            currency=invoice.currency,
            status=InvoiceStatus.PAID,
            invoice_url=invoice.hosted_invoice_url or "",
            invoice_pdf=invoice.invoice_pdf or "",
            period_start=invoice.period_start,
            period_end=invoice.period_end,
        )

    record_business_event(
        BusinessEventType.PAYMENT_SUCCEEDED,
        {
            "customerId": customer.id,
            "invoiceId": invoice.id,
            "amount": invoice.amount_paid,
            "isSubscription": invoice.is_subscription,
        },
    )
    return ServiceResult.success(local)


@register_handler("invoice.payment_failed")
def handle_invoice_payment_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Record a failed invoice payment.

    Existing invoice goes back to open. New invoice is created open with
    nothing paid. Store failures propagate.
    """
    invoice = _decode(webhook_event, InvoiceEvent)
    if invoice is None:
        return ServiceResult.success(None)

    logger.warning(
        "Processing invoice.payment_failed",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "invoice_id": invoice.id,
            "stripe_customer_id": invoice.customer_id,
        },
    )

    customer, subscription = _resolve_invoice_owner(webhook_event, invoice)
    if not customer:
        return ServiceResult.success(None)

    existing = Invoice.objects.find_by_stripe_invoice_id(invoice.id)
    if existing:
        Invoice.objects.update_by_stripe_invoice_id(invoice.id, status=InvoiceStatus.OPEN)
        existing.refresh_from_db()
        local = existing
    else:
        local = Invoice.objects.create(
            customer=customer,
            subscription=subscription,
            stripe_invoice_id=invoice.id,
            amount_due=invoice.amount_due,
            amount_paid=0,
            currency=invoice.currency,
            status=InvoiceStatus.OPEN,
            invoice_url=invoice.hosted_invoice_url or "",
            period_start=invoice.period_start,
            period_end=invoice.period_end,
        )

    record_business_event(
        BusinessEventType.PAYMENT_FAILED,
        {
            "customerId": customer.id,
            "invoiceId": invoice.id,
            "amountDue": invoice.amount_due,
            "isSubscription": invoice.is_subscription,
        },
    )
    return ServiceResult.success(local)


# =============================================================================
# Payment Intent Handlers
# =============================================================================


def _update_payment_status(
    webhook_event: WebhookEvent, payment_intent: PaymentIntentEvent, status: str
) -> ServiceResult:
    """
    Set the status of the Payment for this intent, if there is one.

    A missing Payment is expected (intents created outside Checkout) and
    causes no write. Store failures are logged and swallowed.
    """
    try:
        with transaction.atomic():
            payment = Payment.objects.find_by_payment_intent_id(payment_intent.id)
            if not payment:
                logger.info(
                    "No payment record for intent",
                    extra={"payment_intent_id": payment_intent.id},
                )
                return ServiceResult.success(None)
            Payment.objects.update_by_payment_intent_id(payment_intent.id, status=status)
    except Exception as e:
        logger.error(
            f"Failed to update payment intent: {type(e).__name__}",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "payment_intent_id": payment_intent.id,
                "error": str(e),
            },
            exc_info=True,
        )
        return ServiceResult.success(None)

    return ServiceResult.success(payment)


@register_handler("payment_intent.succeeded")
def handle_payment_intent_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
    payment_intent = _decode(webhook_event, PaymentIntentEvent)
    if payment_intent is None:
        return ServiceResult.success(None)

    logger.info(
        "Processing payment_intent.succeeded",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "payment_intent_id": payment_intent.id,
            "amount": payment_intent.amount,
        },
    )

    return _update_payment_status(webhook_event, payment_intent, PaymentStatus.SUCCEEDED)


@register_handler("payment_intent.payment_failed")
def handle_payment_intent_failed(webhook_event: WebhookEvent) -> ServiceResult:
    payment_intent = _decode(webhook_event, PaymentIntentEvent)
    if payment_intent is None:
        return ServiceResult.success(None)

    logger.warning(
        "Processing payment_intent.payment_failed",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "payment_intent_id": payment_intent.id,
            "reason": payment_intent.last_payment_error_message,
        },
    )

    return _update_payment_status(webhook_event, payment_intent, PaymentStatus.FAILED)
