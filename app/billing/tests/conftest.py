"""
Pytest fixtures for billing tests.

Provides users, billing rows in common states, a mocked StripeAdapter and
an authenticated API client whose views resolve that mock.

Usage:
    def test_cancel(api_client, active_subscription, mock_stripe_adapter):
        response = api_client.post("/api/v1/billing/subscription/cancel/")
        mock_stripe_adapter.update_subscription.assert_called_once()
"""

from unittest.mock import MagicMock, patch

import pytest
from rest_framework.test import APIClient

from billing.adapters import (
    CheckoutSessionResult,
    CustomerResult,
    PortalSessionResult,
    StripeAdapter,
    SubscriptionResult,
)
from billing.states import SubscriptionStatus
from billing.tests.factories import CustomerFactory, SubscriptionFactory, UserFactory


# =============================================================================
# User and Customer Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a test user with no billing customer."""
    return UserFactory(email="billing@example.com", first_name="Ada", last_name="Lovelace")


@pytest.fixture
def customer(db, user):
    """Billing customer for ``user``."""
    return CustomerFactory(user=user, stripe_customer_id="cus_test_owner")


@pytest.fixture
def active_subscription(db, customer):
    return SubscriptionFactory(
        customer=customer,
        stripe_subscription_id="sub_test_active",
        status=SubscriptionStatus.ACTIVE,
    )


@pytest.fixture
def canceling_subscription(db, customer):
    """Active subscription scheduled to cancel at period end."""
    return SubscriptionFactory(
        customer=customer,
        stripe_subscription_id="sub_test_canceling",
        status=SubscriptionStatus.ACTIVE,
        cancel_at_period_end=True,
    )


# =============================================================================
# Stripe Adapter Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe_adapter():
    """StripeAdapter mock with realistic default results."""
    mock = MagicMock(spec=StripeAdapter)
    mock.create_customer.return_value = CustomerResult(
        id="cus_test_new", email="billing@example.com", name="Ada Lovelace"
    )
    mock.create_checkout_session.return_value = CheckoutSessionResult(
        id="cs_test_123",
        url="https://checkout.stripe.com/c/pay/cs_test_123",
        mode="payment",
    )
    mock.create_portal_session.return_value = PortalSessionResult(
        id="bps_test_123",
        url="https://billing.stripe.com/p/session/test_123",
    )
    mock.update_subscription.return_value = SubscriptionResult(
        id="sub_test_active", status="active", cancel_at_period_end=True
    )
    mock.cancel_subscription.return_value = SubscriptionResult(
        id="sub_test_active", status="canceled"
    )
    return mock


@pytest.fixture
def patched_adapter(mock_stripe_adapter):
    """Make the billing views resolve ``mock_stripe_adapter``."""
    with patch("billing.views.get_stripe_adapter", return_value=mock_stripe_adapter):
        yield mock_stripe_adapter


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def authenticated_client(api_client, user):
    api_client.force_authenticate(user=user)
    return api_client
