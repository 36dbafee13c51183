"""
Initial billing schema.

Creates:
    - Customer: user to Stripe customer link
    - Subscription, Invoice, Payment: local mirrors of Stripe objects
    - WebhookEvent: idempotent record of every verified webhook
"""

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


def _timestamps():
    return [
        (
            "id",
            models.BigAutoField(
                auto_created=True,
                primary_key=True,
                serialize=False,
                verbose_name="ID",
            ),
        ),
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def _metadata():
    return (
        "metadata",
        models.JSONField(
            blank=True,
            default=dict,
            help_text="Flexible key-value metadata storage",
        ),
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                *_timestamps(),
                _metadata(),
                (
                    "stripe_customer_id",
                    models.CharField(
                        max_length=255,
                        unique=True,
                        help_text="Stripe Customer ID (cus_xxx)",
                    ),
                ),
                (
                    "email",
                    models.EmailField(
                        blank=True,
                        default="",
                        max_length=254,
                        help_text="Customer email as registered with Stripe",
                    ),
                ),
                (
                    "name",
                    models.CharField(
                        blank=True,
                        default="",
                        max_length=255,
                        help_text="Customer display name as registered with Stripe",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="billing_customer",
                        to=settings.AUTH_USER_MODEL,
                        help_text="User who owns this billing customer",
                    ),
                ),
            ],
            options={
                "verbose_name": "Customer",
                "verbose_name_plural": "Customers",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Subscription",
            fields=[
                *_timestamps(),
                _metadata(),
                (
                    "stripe_subscription_id",
                    models.CharField(
                        max_length=255,
                        unique=True,
                        help_text="Stripe Subscription ID (sub_xxx)",
                    ),
                ),
                (
                    "stripe_price_id",
                    models.CharField(
                        max_length=255,
                        help_text="Stripe Price ID of the first subscription item (price_xxx)",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("canceled", "Canceled"),
                            ("incomplete", "Incomplete"),
                            ("incomplete_expired", "Incomplete Expired"),
                            ("past_due", "Past Due"),
                            ("paused", "Paused"),
                            ("trialing", "Trialing"),
                            ("unpaid", "Unpaid"),
                        ],
                        db_index=True,
                        max_length=20,
                        help_text="Stripe subscription status",
                    ),
                ),
                (
                    "cancel_at_period_end",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the subscription ends when the current period ends",
                    ),
                ),
                ("current_period_start", models.DateTimeField(blank=True, null=True)),
                ("current_period_end", models.DateTimeField(blank=True, null=True)),
                (
                    "canceled_at",
                    models.DateTimeField(
                        blank=True,
                        null=True,
                        help_text="When cancellation was requested",
                    ),
                ),
                (
                    "ended_at",
                    models.DateTimeField(
                        blank=True,
                        null=True,
                        help_text="When the subscription stopped",
                    ),
                ),
                ("trial_start", models.DateTimeField(blank=True, null=True)),
                ("trial_end", models.DateTimeField(blank=True, null=True)),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="subscriptions",
                        to="billing.customer",
                        help_text="Customer who owns this subscription",
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription",
                "verbose_name_plural": "Subscriptions",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                *_timestamps(),
                (
                    "stripe_invoice_id",
                    models.CharField(
                        max_length=255,
                        unique=True,
                        help_text="Stripe Invoice ID (in_xxx)",
                    ),
                ),
                (
                    "amount_due",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Amount due in smallest currency unit",
                    ),
                ),
                (
                    "amount_paid",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Amount paid in smallest currency unit",
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="usd",
                        max_length=3,
                        help_text="ISO 4217 currency code (lowercase)",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("open", "Open"),
                            ("paid", "Paid"),
                            ("uncollectible", "Uncollectible"),
                            ("void", "Void"),
                        ],
                        db_index=True,
                        max_length=20,
                        help_text="Stripe invoice status",
                    ),
                ),
                (
                    "invoice_url",
                    models.URLField(
                        blank=True,
                        default="",
                        max_length=2048,
                        help_text="Stripe-hosted invoice page",
                    ),
                ),
                (
                    "invoice_pdf",
                    models.URLField(
                        blank=True,
                        default="",
                        max_length=2048,
                        help_text="Stripe-hosted invoice PDF",
                    ),
                ),
                ("period_start", models.DateTimeField(blank=True, null=True)),
                ("period_end", models.DateTimeField(blank=True, null=True)),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="invoices",
                        to="billing.customer",
                        help_text="Customer billed by this invoice",
                    ),
                ),
                (
                    "subscription",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="invoices",
                        to="billing.subscription",
                        help_text="Subscription this invoice renews, if any",
                    ),
                ),
            ],
            options={
                "verbose_name": "Invoice",
                "verbose_name_plural": "Invoices",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                *_timestamps(),
                _metadata(),
                (
                    "stripe_payment_intent_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        max_length=255,
                        null=True,
                        help_text="Stripe PaymentIntent ID (pi_xxx)",
                    ),
                ),
                (
                    "stripe_checkout_session_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        max_length=255,
                        null=True,
                        help_text="Stripe Checkout Session ID (cs_xxx)",
                    ),
                ),
                (
                    "amount",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Amount in smallest currency unit",
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="usd",
                        max_length=3,
                        help_text="ISO 4217 currency code (lowercase)",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("succeeded", "Succeeded"),
                            ("pending", "Pending"),
                            ("failed", "Failed"),
                            ("canceled", "Canceled"),
                            ("processing", "Processing"),
                            ("requires_action", "Requires Action"),
                            ("requires_capture", "Requires Capture"),
                            ("requires_confirmation", "Requires Confirmation"),
                            ("requires_payment_method", "Requires Payment Method"),
                        ],
                        db_index=True,
                        max_length=30,
                        help_text="Stripe PaymentIntent status",
                    ),
                ),
                (
                    "description",
                    models.CharField(blank=True, default="", max_length=500),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payments",
                        to="billing.customer",
                        help_text="Customer who paid",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                *_timestamps(),
                (
                    "stripe_event_id",
                    models.CharField(
                        max_length=255,
                        unique=True,
                        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        max_length=100,
                        help_text="Stripe event type (e.g., 'customer.subscription.created')",
                    ),
                ),
                (
                    "payload",
                    models.JSONField(help_text="Full webhook payload from Stripe (JSON)"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                        help_text="Current processing status",
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        null=True,
                        help_text="When event was successfully processed",
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        null=True,
                        help_text="Error message if processing failed",
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of processing attempts",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
            },
        ),
        # Active-subscription lookups filter by customer and status
        migrations.AddIndex(
            model_name="subscription",
            index=models.Index(
                fields=["customer", "status"],
                name="billing_sub_cust_status_idx",
            ),
        ),
        # Retry and stuck-event sweeps
        migrations.AddIndex(
            model_name="webhookevent",
            index=models.Index(
                fields=["status", "created_at"],
                name="billing_wh_status_created_idx",
            ),
        ),
        migrations.AddIndex(
            model_name="webhookevent",
            index=models.Index(
                fields=["status", "retry_count"],
                name="billing_wh_status_retry_idx",
            ),
        ),
    ]
