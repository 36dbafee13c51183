"""
Billing API views.

This module provides API views for:
- Checkout sessions (one-time payment and subscription)
- Billing portal sessions
- Subscription status, cancel and resume
- Customer overview (subscription, recent payments and invoices)

Related files:
    - serializers.py: Request/response serialization
    - services/: Business logic (CheckoutService, SubscriptionService)
    - urls.py: URL routing
    - webhooks/views.py: Stripe webhook endpoint

Note:
    Endpoints are mounted under /api/v1/billing/ and require an
    authenticated user:
    - Checkout: /api/v1/billing/checkout/
    - Subscription checkout: /api/v1/billing/checkout/subscription/
    - Portal: /api/v1/billing/portal/
    - Status: /api/v1/billing/subscription/
    - Cancel: /api/v1/billing/subscription/cancel/
    - Resume: /api/v1/billing/subscription/resume/
    - Customer: /api/v1/billing/customer/

    BillingError subclasses raised by the services are rendered as
    {"error", "error_code", "details"} with the exception's status_code.
"""

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError

from billing.apps import get_stripe_adapter
from billing.serializers import (
    CancelSubscriptionRequestSerializer,
    CancelSubscriptionResponseSerializer,
    CheckoutRequestSerializer,
    CheckoutSessionSerializer,
    CustomerOverviewSerializer,
    ErrorResponseSerializer,
    PortalRequestSerializer,
    PortalSessionSerializer,
    ResumeSubscriptionResponseSerializer,
    SubscriptionCheckoutRequestSerializer,
    SubscriptionStatusSerializer,
)
from billing.services import CheckoutRequest, CheckoutService, SubscriptionService

logger = logging.getLogger(__name__)


class BillingAPIView(APIView):
    """
    Base view for billing endpoints.

    Converts application errors into JSON error bodies; everything else
    goes through DRF's default handling.
    """

    permission_classes = [IsAuthenticated]

    def handle_exception(self, exc):
        if isinstance(exc, BaseApplicationError):
            log = logger.error if exc.status_code >= 500 else logger.warning
            log(
                "Billing request failed",
                extra={
                    "path": self.request.path,
                    "user_id": getattr(self.request.user, "pk", None),
                    "error_code": exc.error_code,
                },
            )
            return Response(exc.to_dict(), status=exc.status_code)
        return super().handle_exception(exc)

    def get_base_url(self):
        """Frontend origin for default redirect URLs, when the client sent one."""
        return self.request.headers.get("Origin") or None


# =============================================================================
# Checkout Views
# =============================================================================


class CheckoutView(BillingAPIView):
    """
    Start a one-time payment checkout.

    POST: Create a Stripe Checkout Session in payment mode

    URL: /api/v1/billing/checkout/
    """

    @extend_schema(
        summary="Create payment checkout session",
        description=(
            "Create a Stripe Checkout Session for a one-time purchase. "
            "The Stripe customer is created on first use."
        ),
        tags=["Billing - Checkout"],
        request=CheckoutRequestSerializer,
        responses={
            201: CheckoutSessionSerializer,
            400: OpenApiResponse(
                response=ErrorResponseSerializer, description="Invalid request or card declined"
            ),
            502: OpenApiResponse(
                response=ErrorResponseSerializer, description="Stripe unavailable"
            ),
        },
    )
    def post(self, request):
        serializer = CheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        session = CheckoutService(get_stripe_adapter()).create_payment_checkout(
            request.user,
            CheckoutRequest(**serializer.validated_data),
            base_url=self.get_base_url(),
        )
        return Response(
            CheckoutSessionSerializer(session).data,
            status=status.HTTP_201_CREATED,
        )


class SubscriptionCheckoutView(BillingAPIView):
    """
    Start a subscription checkout.

    POST: Create a Stripe Checkout Session in subscription mode

    URL: /api/v1/billing/checkout/subscription/

    Users with an active or trialing subscription are sent to the billing
    portal instead (400 SUBSCRIPTION_ALREADY_ACTIVE).
    """

    @extend_schema(
        summary="Create subscription checkout session",
        description=(
            "Create a Stripe Checkout Session for a subscription plan. "
            "A trial is only applied for customers that never subscribed."
        ),
        tags=["Billing - Checkout"],
        request=SubscriptionCheckoutRequestSerializer,
        responses={
            201: CheckoutSessionSerializer,
            400: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Invalid request or subscription already active",
            ),
            502: OpenApiResponse(
                response=ErrorResponseSerializer, description="Stripe unavailable"
            ),
        },
    )
    def post(self, request):
        serializer = SubscriptionCheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        session = CheckoutService(get_stripe_adapter()).create_subscription_checkout(
            request.user,
            CheckoutRequest(**serializer.validated_data),
            base_url=self.get_base_url(),
        )
        return Response(
            CheckoutSessionSerializer(session).data,
            status=status.HTTP_201_CREATED,
        )


class PortalView(BillingAPIView):
    """
    Open the Stripe Billing Portal.

    POST: Create a portal session for the current user's customer

    URL: /api/v1/billing/portal/
    """

    @extend_schema(
        summary="Create billing portal session",
        tags=["Billing - Portal"],
        request=PortalRequestSerializer,
        responses={
            200: PortalSessionSerializer,
            404: OpenApiResponse(
                response=ErrorResponseSerializer, description="No billing customer"
            ),
        },
    )
    def post(self, request):
        serializer = PortalRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        portal = CheckoutService(get_stripe_adapter()).create_portal_session(
            request.user,
            return_url=serializer.validated_data.get("return_url"),
            base_url=self.get_base_url(),
        )
        return Response(PortalSessionSerializer(portal).data)


# =============================================================================
# Subscription Views
# =============================================================================


class SubscriptionStatusView(BillingAPIView):
    """
    URL: /api/v1/billing/subscription/
    """

    @extend_schema(
        summary="Get subscription status",
        description=(
            "The active subscription and its plan. When nothing is active, "
            "the latest subscription is returned with has_subscription false."
        ),
        tags=["Billing - Subscription"],
        responses={200: SubscriptionStatusSerializer},
    )
    def get(self, request):
        result = SubscriptionService(get_stripe_adapter()).get_status(request.user)
        return Response(SubscriptionStatusSerializer(result).data)


class CancelSubscriptionView(BillingAPIView):
    """
    Cancel the current subscription.

    POST: Cancel now ({"immediately": true}) or at the end of the period

    URL: /api/v1/billing/subscription/cancel/
    """

    @extend_schema(
        summary="Cancel subscription",
        tags=["Billing - Subscription"],
        request=CancelSubscriptionRequestSerializer,
        responses={
            200: CancelSubscriptionResponseSerializer,
            400: OpenApiResponse(
                response=ErrorResponseSerializer, description="No active subscription"
            ),
            404: OpenApiResponse(
                response=ErrorResponseSerializer, description="No billing customer"
            ),
        },
    )
    def post(self, request):
        serializer = CancelSubscriptionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = SubscriptionService(get_stripe_adapter()).cancel(
            request.user,
            immediately=serializer.validated_data["immediately"],
        )
        return Response(CancelSubscriptionResponseSerializer(result).data)


class ResumeSubscriptionView(BillingAPIView):
    """
    Undo a scheduled cancellation.

    URL: /api/v1/billing/subscription/resume/
    """

    @extend_schema(
        summary="Resume subscription",
        tags=["Billing - Subscription"],
        request=None,
        responses={
            200: ResumeSubscriptionResponseSerializer,
            400: OpenApiResponse(
                response=ErrorResponseSerializer, description="Nothing to resume"
            ),
            404: OpenApiResponse(
                response=ErrorResponseSerializer, description="No billing customer"
            ),
        },
    )
    def post(self, request):
        result = SubscriptionService(get_stripe_adapter()).resume(request.user)
        return Response(ResumeSubscriptionResponseSerializer(result).data)


class CustomerView(BillingAPIView):
    """
    URL: /api/v1/billing/customer/
    """

    @extend_schema(
        summary="Get billing overview",
        description="Customer record, current subscription and the 10 latest payments and invoices.",
        tags=["Billing - Customer"],
        responses={200: CustomerOverviewSerializer},
    )
    def get(self, request):
        overview = SubscriptionService(get_stripe_adapter()).get_customer_overview(request.user)
        return Response(CustomerOverviewSerializer(overview).data)
