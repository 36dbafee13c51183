"""
Django admin configuration for billing models.

Billing rows mirror Stripe and are written by webhooks, so the admin is
read-mostly. WebhookEvent gets an action to requeue failed events.

Related files:
    - models/: Model definitions
    - tasks.py: process_webhook_event
"""

from django.contrib import admin

from billing.models import Customer, Invoice, Payment, Subscription, WebhookEvent
from billing.states import WebhookEventStatus


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("stripe_customer_id", "user", "email", "created_at")
    search_fields = ("stripe_customer_id", "email", "user__email")
    raw_id_fields = ("user",)
    readonly_fields = ("created_at", "updated_at")


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = (
        "stripe_subscription_id",
        "customer",
        "status",
        "stripe_price_id",
        "cancel_at_period_end",
        "current_period_end",
    )
    list_filter = ("status", "cancel_at_period_end")
    search_fields = ("stripe_subscription_id", "customer__stripe_customer_id")
    raw_id_fields = ("customer",)
    readonly_fields = ("created_at", "updated_at")


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("stripe_invoice_id", "customer", "status", "amount_due", "amount_paid", "currency")
    list_filter = ("status", "currency")
    search_fields = ("stripe_invoice_id", "customer__stripe_customer_id")
    raw_id_fields = ("customer", "subscription")
    readonly_fields = ("created_at", "updated_at")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "customer", "status", "amount", "currency", "stripe_payment_intent_id")
    list_filter = ("status", "currency")
    search_fields = ("stripe_payment_intent_id", "stripe_checkout_session_id")
    raw_id_fields = ("customer",)
    readonly_fields = ("created_at", "updated_at")


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Webhook inbox.

    The payload is shown read-only; "Requeue" sends selected events back
    through Celery regardless of their retry count.
    """

    list_display = ("stripe_event_id", "event_type", "status", "retry_count", "created_at")
    list_filter = ("status", "event_type")
    search_fields = ("stripe_event_id",)
    readonly_fields = (
        "stripe_event_id",
        "event_type",
        "payload",
        "processed_at",
        "error_message",
        "retry_count",
        "created_at",
        "updated_at",
    )
    actions = ["requeue_events"]

    @admin.action(description="Requeue selected events")
    def requeue_events(self, request, queryset):
        from billing.tasks import process_webhook_event

        count = 0
        for event in queryset.exclude(status=WebhookEventStatus.PROCESSED):
            process_webhook_event.delay(event.id)
            count += 1
        self.message_user(request, f"Queued {count} event(s) for processing.")
