"""
Tests for the billing REST endpoints.

Views resolve the StripeAdapter through ``get_stripe_adapter``, which the
``patched_adapter`` fixture replaces with a mock.
"""

import pytest
from django.urls import reverse
from rest_framework import status

from billing.exceptions import StripeAPIUnavailableError, StripeCardDeclinedError
from billing.models import Customer, Subscription
from billing.states import SubscriptionStatus
from billing.tests.factories import PaymentFactory, SubscriptionFactory


@pytest.mark.django_db
class TestAuthentication:
    @pytest.mark.parametrize(
        "method,url_name",
        [
            ("post", "billing:checkout"),
            ("post", "billing:subscription-checkout"),
            ("post", "billing:portal"),
            ("get", "billing:subscription"),
            ("post", "billing:subscription-cancel"),
            ("post", "billing:subscription-resume"),
            ("get", "billing:customer"),
        ],
    )
    def test_requires_authentication(self, api_client, patched_adapter, method, url_name):
        response = getattr(api_client, method)(reverse(url_name), {}, format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        patched_adapter.create_checkout_session.assert_not_called()
        patched_adapter.update_subscription.assert_not_called()


@pytest.mark.django_db
class TestCheckoutView:
    url = "/api/v1/billing/checkout/"

    def test_creates_session(self, authenticated_client, patched_adapter, user):
        response = authenticated_client.post(
            self.url, {"price_id": "price_credits_100"}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data == {
            "session_id": "cs_test_123",
            "url": "https://checkout.stripe.com/c/pay/cs_test_123",
        }
        assert Customer.objects.filter(user=user).exists()

    def test_origin_header_sets_redirect_base(self, authenticated_client, patched_adapter):
        authenticated_client.post(
            self.url,
            {"price_id": "price_credits_100"},
            format="json",
            HTTP_ORIGIN="https://shop.example.com",
        )

        params = patched_adapter.create_checkout_session.call_args.args[0]
        assert params.cancel_url == "https://shop.example.com/checkout/cancel"

    def test_missing_price_id(self, authenticated_client, patched_adapter):
        response = authenticated_client.post(self.url, {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "price_id" in response.data
        patched_adapter.create_checkout_session.assert_not_called()

    def test_invalid_success_url(self, authenticated_client, patched_adapter):
        response = authenticated_client.post(
            self.url,
            {"price_id": "price_credits_100", "success_url": "not a url"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "success_url" in response.data

    def test_card_declined(self, authenticated_client, patched_adapter):
        patched_adapter.create_checkout_session.side_effect = StripeCardDeclinedError(
            "Your card was declined.", decline_code="insufficient_funds"
        )

        response = authenticated_client.post(
            self.url, {"price_id": "price_credits_100"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error"] == "Your card was declined."
        assert response.data["error_code"] == "PAYMENT_FAILED"
        assert response.data["details"]["decline_code"] == "insufficient_funds"

    def test_stripe_unavailable(self, authenticated_client, patched_adapter):
        patched_adapter.create_customer.side_effect = StripeAPIUnavailableError(
            "Stripe is unavailable"
        )

        response = authenticated_client.post(
            self.url, {"price_id": "price_credits_100"}, format="json"
        )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.data["error_code"] == "STRIPE_UNAVAILABLE"


@pytest.mark.django_db
class TestSubscriptionCheckoutView:
    url = "/api/v1/billing/checkout/subscription/"

    def test_creates_session(self, authenticated_client, patched_adapter):
        response = authenticated_client.post(
            self.url,
            {"price_id": "price_pro_monthly", "metadata": {"campaign": "spring"}},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["session_id"] == "cs_test_123"
        params = patched_adapter.create_checkout_session.call_args.args[0]
        assert params.metadata["campaign"] == "spring"
        assert params.subscription_data["trial_period_days"] == 14

    def test_already_subscribed(self, authenticated_client, patched_adapter, active_subscription):
        response = authenticated_client.post(
            self.url, {"price_id": "price_pro_monthly"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "SUBSCRIPTION_ALREADY_ACTIVE"

    def test_trial_days_out_of_range(self, authenticated_client, patched_adapter):
        response = authenticated_client.post(
            self.url,
            {"price_id": "price_pro_monthly", "trial_days": 1000},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "trial_days" in response.data


@pytest.mark.django_db
class TestPortalView:
    url = "/api/v1/billing/portal/"

    def test_no_customer(self, authenticated_client, patched_adapter):
        response = authenticated_client.post(self.url, {}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "CUSTOMER_NOT_FOUND"

    def test_returns_portal_url(self, authenticated_client, patched_adapter, customer):
        response = authenticated_client.post(
            self.url, {"return_url": "https://app.example.com/account"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"url": "https://billing.stripe.com/p/session/test_123"}
        patched_adapter.create_portal_session.assert_called_once_with(
            "cus_test_owner", "https://app.example.com/account"
        )


@pytest.mark.django_db
class TestSubscriptionStatusView:
    url = "/api/v1/billing/subscription/"

    def test_no_subscription(self, authenticated_client, patched_adapter):
        response = authenticated_client.get(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"has_subscription": False, "subscription": None, "plan": None}

    def test_active_subscription(self, authenticated_client, patched_adapter, active_subscription):
        response = authenticated_client.get(self.url)

        assert response.data["has_subscription"] is True
        assert response.data["subscription"]["stripe_subscription_id"] == "sub_test_active"
        assert response.data["subscription"]["is_active"] is True
        assert response.data["plan"]["id"] == "pro"

    def test_does_not_leak_other_users_subscription(
        self, authenticated_client, patched_adapter, user
    ):
        SubscriptionFactory(status=SubscriptionStatus.ACTIVE)

        response = authenticated_client.get(self.url)

        assert response.data["has_subscription"] is False
        assert response.data["subscription"] is None


@pytest.mark.django_db
class TestCancelSubscriptionView:
    url = "/api/v1/billing/subscription/cancel/"

    def test_cancel_at_period_end(self, authenticated_client, patched_adapter, active_subscription):
        response = authenticated_client.post(self.url, {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["canceled"] is True
        assert response.data["immediately"] is False
        assert response.data["subscription_id"] == "sub_test_active"
        assert response.data["cancel_at"] is not None

    def test_cancel_immediately(self, authenticated_client, patched_adapter, active_subscription):
        response = authenticated_client.post(self.url, {"immediately": True}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["cancel_at"] is None
        assert (
            Subscription.objects.get(pk=active_subscription.pk).status
            == SubscriptionStatus.CANCELED
        )

    def test_no_active_subscription(self, authenticated_client, patched_adapter, customer):
        response = authenticated_client.post(self.url, {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "NO_ACTIVE_SUBSCRIPTION"


@pytest.mark.django_db
class TestResumeSubscriptionView:
    url = "/api/v1/billing/subscription/resume/"

    def test_resume(self, authenticated_client, patched_adapter, canceling_subscription):
        response = authenticated_client.post(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["resumed"] is True
        assert response.data["subscription_id"] == "sub_test_canceling"

    def test_nothing_to_resume(self, authenticated_client, patched_adapter, active_subscription):
        response = authenticated_client.post(self.url)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "NO_RESUMABLE_SUBSCRIPTION"

    def test_no_customer(self, authenticated_client, patched_adapter):
        response = authenticated_client.post(self.url)

        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestCustomerView:
    url = "/api/v1/billing/customer/"

    def test_no_customer(self, authenticated_client, patched_adapter):
        response = authenticated_client.get(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["has_customer"] is False
        assert response.data["customer"] is None

    def test_overview(self, authenticated_client, patched_adapter, active_subscription):
        PaymentFactory(customer=active_subscription.customer, amount=999)

        response = authenticated_client.get(self.url)

        assert response.data["has_customer"] is True
        assert response.data["customer"]["stripe_customer_id"] == "cus_test_owner"
        assert response.data["subscription"]["stripe_subscription_id"] == "sub_test_active"
        assert [p["amount"] for p in response.data["payments"]] == [999]
        assert response.data["invoices"] == []
