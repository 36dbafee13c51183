"""
DRF serializers for the billing app.

This module provides serializers for:
- Checkout, portal and cancel request bodies
- Subscription, customer, payment and invoice display

Related files:
    - services/: CheckoutService, SubscriptionService
    - views.py: Billing API views

Usage:
    serializer = CheckoutRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiExample, extend_schema_serializer
from rest_framework import serializers

from billing.models import Customer, Invoice, Payment, Subscription


# =============================================================================
# Request Serializers
# =============================================================================


class CheckoutRequestSerializer(serializers.Serializer):
    """One-time payment checkout request."""

    price_id = serializers.CharField(max_length=255)
    success_url = serializers.URLField(required=False, max_length=2048)
    cancel_url = serializers.URLField(required=False, max_length=2048)
    metadata = serializers.DictField(
        child=serializers.CharField(max_length=500),
        required=False,
        help_text="Extra key/value pairs attached to the Checkout Session",
    )


class SubscriptionCheckoutRequestSerializer(CheckoutRequestSerializer):
    """Subscription checkout request."""

    trial_days = serializers.IntegerField(
        required=False,
        min_value=0,
        max_value=730,
        help_text="Overrides the plan's trial length; only first-time subscribers get a trial",
    )
    allow_promotion_codes = serializers.BooleanField(required=False, default=True)


class PortalRequestSerializer(serializers.Serializer):
    return_url = serializers.URLField(required=False, max_length=2048)


class CancelSubscriptionRequestSerializer(serializers.Serializer):
    immediately = serializers.BooleanField(
        required=False,
        default=False,
        help_text="Cancel now instead of at the end of the billing period",
    )


# =============================================================================
# Response Serializers
# =============================================================================


class CheckoutSessionSerializer(serializers.Serializer):
    session_id = serializers.CharField(source="id")
    url = serializers.CharField(allow_null=True)


class PortalSessionSerializer(serializers.Serializer):
    url = serializers.CharField()


@extend_schema_serializer(
    examples=[
        OpenApiExample(
            "Trialing subscription",
            value={
                "id": 12,
                "stripe_subscription_id": "sub_1PqRsT2eZvKYlo2C",
                "stripe_price_id": "price_pro_monthly",
                "status": "trialing",
                "is_active": True,
                "is_trialing": True,
                "current_period_start": "2025-01-15T10:30:00Z",
                "current_period_end": "2025-02-15T10:30:00Z",
                "cancel_at_period_end": False,
                "canceled_at": None,
                "ended_at": None,
                "trial_start": "2025-01-15T10:30:00Z",
                "trial_end": "2025-01-29T10:30:00Z",
            },
            response_only=True,
        ),
    ]
)
class SubscriptionSerializer(serializers.ModelSerializer):
    """Read-only subscription view with computed flags."""

    is_active = serializers.BooleanField(read_only=True)
    is_trialing = serializers.BooleanField(read_only=True)

    class Meta:
        model = Subscription
        fields = [
            "id",
            "stripe_subscription_id",
            "stripe_price_id",
            "status",
            "is_active",
            "is_trialing",
            "current_period_start",
            "current_period_end",
            "cancel_at_period_end",
            "canceled_at",
            "ended_at",
            "trial_start",
            "trial_end",
        ]
        read_only_fields = fields


class SubscriptionStatusSerializer(serializers.Serializer):
    has_subscription = serializers.BooleanField()
    subscription = SubscriptionSerializer(allow_null=True)
    plan = serializers.SerializerMethodField()

    def get_plan(self, obj) -> dict | None:
        plan = obj.get("plan")
        return plan.to_dict() if plan else None


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ["id", "stripe_customer_id", "email", "name", "created_at"]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = ["id", "amount", "currency", "status", "description", "created_at"]
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Invoice
        fields = [
            "id",
            "stripe_invoice_id",
            "amount_due",
            "amount_paid",
            "currency",
            "status",
            "invoice_url",
            "invoice_pdf",
            "created_at",
        ]
        read_only_fields = fields


class CustomerOverviewSerializer(serializers.Serializer):
    has_customer = serializers.BooleanField()
    customer = CustomerSerializer(allow_null=True)
    subscription = SubscriptionSerializer(allow_null=True)
    payments = PaymentSerializer(many=True)
    invoices = InvoiceSerializer(many=True)


class CancelSubscriptionResponseSerializer(serializers.Serializer):
    canceled = serializers.BooleanField()
    immediately = serializers.BooleanField()
    cancel_at = serializers.DateTimeField(allow_null=True)
    subscription_id = serializers.CharField()


class ResumeSubscriptionResponseSerializer(serializers.Serializer):
    resumed = serializers.BooleanField()
    subscription_id = serializers.CharField()
    status = serializers.CharField()
    current_period_end = serializers.DateTimeField(allow_null=True)


class ErrorResponseSerializer(serializers.Serializer):
    error = serializers.CharField()
    error_code = serializers.CharField()
    details = serializers.DictField(required=False)
