"""
Tests for billing services.

Tests cover:
- CheckoutService: customer creation, payment and subscription checkout,
  portal sessions
- SubscriptionService: status, overview, cancel, resume

The StripeAdapter is a MagicMock; only local rows are real.
"""

from unittest.mock import patch

import pytest
from django.db import IntegrityError
from django.utils import timezone

from billing.analytics import BusinessEventType
from billing.exceptions import (
    CustomerNotFoundError,
    NoActiveSubscriptionError,
    NoResumableSubscriptionError,
    StripeAPIUnavailableError,
    SubscriptionAlreadyActiveError,
)
from billing.models import Customer, Subscription
from billing.services import CheckoutRequest, CheckoutService, SubscriptionService
from billing.states import CheckoutMode, SubscriptionStatus
from billing.tests.factories import (
    CustomerFactory,
    InvoiceFactory,
    PaymentFactory,
    SubscriptionFactory,
)


# =============================================================================
# CheckoutService
# =============================================================================


@pytest.mark.django_db
class TestGetOrCreateCustomer:
    """Tests for CheckoutService.get_or_create_customer."""

    def test_creates_stripe_and_local_customer(self, user, mock_stripe_adapter):
        service = CheckoutService(mock_stripe_adapter)

        customer = service.get_or_create_customer(user)

        params = mock_stripe_adapter.create_customer.call_args.args[0]
        assert params.email == "billing@example.com"
        assert params.name == "Ada Lovelace"
        assert params.metadata == {"userId": str(user.pk)}
        assert customer.stripe_customer_id == "cus_test_new"
        assert customer.user == user

    def test_returns_existing_customer(self, customer, mock_stripe_adapter):
        service = CheckoutService(mock_stripe_adapter)

        assert service.get_or_create_customer(customer.user) == customer
        mock_stripe_adapter.create_customer.assert_not_called()

    def test_stripe_failure_creates_nothing_locally(self, user, mock_stripe_adapter):
        mock_stripe_adapter.create_customer.side_effect = StripeAPIUnavailableError("down")

        with pytest.raises(StripeAPIUnavailableError):
            CheckoutService(mock_stripe_adapter).get_or_create_customer(user)

        assert not Customer.objects.exists()

    def test_concurrent_create_returns_existing(self, user, mock_stripe_adapter):
        existing = CustomerFactory(user=user, stripe_customer_id="cus_first")

        with patch.object(Customer.objects, "find_by_user_id", side_effect=[None, existing]):
            customer = CheckoutService(mock_stripe_adapter).get_or_create_customer(user)

        assert customer == existing
        assert Customer.objects.get(user=user).stripe_customer_id == "cus_first"

    def test_duplicate_stripe_id_still_raises(self, user, mock_stripe_adapter):
        CustomerFactory(stripe_customer_id="cus_test_new")

        with pytest.raises(IntegrityError):
            CheckoutService(mock_stripe_adapter).get_or_create_customer(user)


@pytest.mark.django_db
class TestCreatePaymentCheckout:
    """Tests for one-time payment checkout."""

    def test_creates_payment_session(self, customer, mock_stripe_adapter):
        service = CheckoutService(mock_stripe_adapter)

        session = service.create_payment_checkout(
            customer.user,
            CheckoutRequest(price_id="price_credits_100"),
            base_url="https://app.example.com",
        )

        assert session.id == "cs_test_123"
        params = mock_stripe_adapter.create_checkout_session.call_args.args[0]
        assert params.mode == CheckoutMode.PAYMENT
        assert params.customer_id == "cus_test_owner"
        assert params.price_id == "price_credits_100"
        assert params.allow_promotion_codes is True
        assert params.subscription_data is None
        assert params.metadata == {
            "userId": str(customer.user.pk),
            "customerId": str(customer.id),
        }
        assert params.success_url == (
            "https://app.example.com/checkout/success?session_id={CHECKOUT_SESSION_ID}"
        )
        assert params.cancel_url == "https://app.example.com/checkout/cancel"

    def test_client_metadata_cannot_override_customer_id(self, customer, mock_stripe_adapter):
        CheckoutService(mock_stripe_adapter).create_payment_checkout(
            customer.user,
            CheckoutRequest(
                price_id="price_credits_100",
                metadata={"customerId": "999", "campaign": "spring"},
            ),
        )

        params = mock_stripe_adapter.create_checkout_session.call_args.args[0]
        assert params.metadata["customerId"] == str(customer.id)
        assert params.metadata["campaign"] == "spring"

    def test_explicit_urls_win(self, customer, mock_stripe_adapter):
        CheckoutService(mock_stripe_adapter).create_payment_checkout(
            customer.user,
            CheckoutRequest(
                price_id="price_credits_100",
                success_url="https://shop.example.com/done",
                cancel_url="https://shop.example.com/back",
            ),
        )

        params = mock_stripe_adapter.create_checkout_session.call_args.args[0]
        assert params.success_url == "https://shop.example.com/done"
        assert params.cancel_url == "https://shop.example.com/back"

    def test_default_urls_use_frontend_url(self, settings, customer, mock_stripe_adapter):
        settings.FRONTEND_URL = "https://frontend.example.com/"

        CheckoutService(mock_stripe_adapter).create_payment_checkout(
            customer.user, CheckoutRequest(price_id="price_credits_100")
        )

        params = mock_stripe_adapter.create_checkout_session.call_args.args[0]
        assert params.cancel_url == "https://frontend.example.com/checkout/cancel"

    def test_unknown_product_still_checks_out(self, customer, mock_stripe_adapter, caplog):
        CheckoutService(mock_stripe_adapter).create_payment_checkout(
            customer.user, CheckoutRequest(price_id="price_unlisted")
        )

        mock_stripe_adapter.create_checkout_session.assert_called_once()
        assert any("not found in one-time product catalog" in r.message for r in caplog.records)

    def test_creates_customer_on_first_checkout(self, user, mock_stripe_adapter):
        CheckoutService(mock_stripe_adapter).create_payment_checkout(
            user, CheckoutRequest(price_id="price_credits_100")
        )

        assert Customer.objects.get(user=user).stripe_customer_id == "cus_test_new"

    def test_records_checkout_started(self, customer, mock_stripe_adapter):
        with patch("billing.services.checkout.record_business_event") as mock_record:
            CheckoutService(mock_stripe_adapter).create_payment_checkout(
                customer.user, CheckoutRequest(price_id="price_credits_100")
            )

        event_type, data = mock_record.call_args.args
        assert event_type == BusinessEventType.CHECKOUT_STARTED
        assert data["checkoutSessionId"] == "cs_test_123"
        assert data["mode"] == "payment"


@pytest.mark.django_db
class TestCreateSubscriptionCheckout:
    """Tests for subscription checkout."""

    def test_first_subscription_gets_plan_trial(self, customer, mock_stripe_adapter):
        CheckoutService(mock_stripe_adapter).create_subscription_checkout(
            customer.user, CheckoutRequest(price_id="price_pro_monthly")
        )

        params = mock_stripe_adapter.create_checkout_session.call_args.args[0]
        assert params.mode == CheckoutMode.SUBSCRIPTION
        assert params.subscription_data["trial_period_days"] == 14
        assert params.subscription_data["metadata"] == {
            "userId": str(customer.user.pk),
            "customerId": str(customer.id),
        }
        assert params.metadata["priceId"] == "price_pro_monthly"

    def test_returning_subscriber_gets_no_trial(self, customer, mock_stripe_adapter):
        SubscriptionFactory(customer=customer, status=SubscriptionStatus.CANCELED)

        CheckoutService(mock_stripe_adapter).create_subscription_checkout(
            customer.user, CheckoutRequest(price_id="price_pro_monthly")
        )

        params = mock_stripe_adapter.create_checkout_session.call_args.args[0]
        assert "trial_period_days" not in params.subscription_data

    def test_plan_without_trial(self, customer, mock_stripe_adapter):
        CheckoutService(mock_stripe_adapter).create_subscription_checkout(
            customer.user, CheckoutRequest(price_id="price_enterprise_monthly")
        )

        params = mock_stripe_adapter.create_checkout_session.call_args.args[0]
        assert "trial_period_days" not in params.subscription_data

    def test_explicit_trial_days_override_plan(self, customer, mock_stripe_adapter):
        CheckoutService(mock_stripe_adapter).create_subscription_checkout(
            customer.user,
            CheckoutRequest(price_id="price_enterprise_monthly", trial_days=30),
        )

        params = mock_stripe_adapter.create_checkout_session.call_args.args[0]
        assert params.subscription_data["trial_period_days"] == 30

    def test_promotion_codes_can_be_disabled(self, customer, mock_stripe_adapter):
        CheckoutService(mock_stripe_adapter).create_subscription_checkout(
            customer.user,
            CheckoutRequest(price_id="price_pro_monthly", allow_promotion_codes=False),
        )

        params = mock_stripe_adapter.create_checkout_session.call_args.args[0]
        assert params.allow_promotion_codes is False

    @pytest.mark.parametrize("status", [SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING])
    def test_rejects_when_already_subscribed(self, customer, mock_stripe_adapter, status):
        SubscriptionFactory(customer=customer, status=status)

        with pytest.raises(SubscriptionAlreadyActiveError) as exc_info:
            CheckoutService(mock_stripe_adapter).create_subscription_checkout(
                customer.user, CheckoutRequest(price_id="price_pro_monthly")
            )

        assert exc_info.value.error_code == "SUBSCRIPTION_ALREADY_ACTIVE"
        mock_stripe_adapter.create_checkout_session.assert_not_called()

    def test_records_plan_name(self, customer, mock_stripe_adapter):
        with patch("billing.services.checkout.record_business_event") as mock_record:
            CheckoutService(mock_stripe_adapter).create_subscription_checkout(
                customer.user, CheckoutRequest(price_id="price_pro_yearly")
            )

        _, data = mock_record.call_args.args
        assert data["planName"] == "Pro"
        assert data["mode"] == "subscription"


@pytest.mark.django_db
class TestCreatePortalSession:
    def test_requires_customer(self, user, mock_stripe_adapter):
        with pytest.raises(CustomerNotFoundError):
            CheckoutService(mock_stripe_adapter).create_portal_session(user)

        mock_stripe_adapter.create_portal_session.assert_not_called()

    def test_default_return_url(self, customer, mock_stripe_adapter):
        portal = CheckoutService(mock_stripe_adapter).create_portal_session(
            customer.user, base_url="https://app.example.com"
        )

        assert portal.url.startswith("https://billing.stripe.com/")
        mock_stripe_adapter.create_portal_session.assert_called_once_with(
            "cus_test_owner", "https://app.example.com/billing"
        )

    def test_explicit_return_url(self, customer, mock_stripe_adapter):
        CheckoutService(mock_stripe_adapter).create_portal_session(
            customer.user, return_url="https://app.example.com/settings"
        )

        mock_stripe_adapter.create_portal_session.assert_called_once_with(
            "cus_test_owner", "https://app.example.com/settings"
        )


# =============================================================================
# SubscriptionService
# =============================================================================


@pytest.mark.django_db
class TestGetStatus:
    def test_no_customer(self, user, mock_stripe_adapter):
        status = SubscriptionService(mock_stripe_adapter).get_status(user)

        assert status == {"has_subscription": False, "subscription": None, "plan": None}

    def test_active_subscription(self, active_subscription, mock_stripe_adapter):
        status = SubscriptionService(mock_stripe_adapter).get_status(
            active_subscription.customer.user
        )

        assert status["has_subscription"] is True
        assert status["subscription"] == active_subscription
        assert status["plan"].id == "pro"

    def test_falls_back_to_latest_subscription(self, customer, mock_stripe_adapter):
        SubscriptionFactory(customer=customer, status=SubscriptionStatus.CANCELED)
        latest = SubscriptionFactory(customer=customer, status=SubscriptionStatus.PAST_DUE)

        status = SubscriptionService(mock_stripe_adapter).get_status(customer.user)

        assert status["has_subscription"] is False
        assert status["subscription"] == latest


@pytest.mark.django_db
class TestGetCustomerOverview:
    def test_no_customer(self, user, mock_stripe_adapter):
        overview = SubscriptionService(mock_stripe_adapter).get_customer_overview(user)

        assert overview["has_customer"] is False
        assert overview["payments"] == []

    def test_limits_history_to_ten(self, active_subscription, mock_stripe_adapter):
        customer = active_subscription.customer
        PaymentFactory.create_batch(12, customer=customer)
        InvoiceFactory.create_batch(3, customer=customer)

        overview = SubscriptionService(mock_stripe_adapter).get_customer_overview(customer.user)

        assert overview["customer"] == customer
        assert overview["subscription"] == active_subscription
        assert len(overview["payments"]) == 10
        assert len(overview["invoices"]) == 3


@pytest.mark.django_db
class TestCancel:
    """Tests for SubscriptionService.cancel."""

    def test_cancel_at_period_end(self, active_subscription, mock_stripe_adapter):
        result = SubscriptionService(mock_stripe_adapter).cancel(
            active_subscription.customer.user
        )

        mock_stripe_adapter.update_subscription.assert_called_once_with(
            "sub_test_active", cancel_at_period_end=True
        )
        mock_stripe_adapter.cancel_subscription.assert_not_called()
        active_subscription.refresh_from_db()
        assert active_subscription.cancel_at_period_end is True
        assert active_subscription.canceled_at is not None
        assert active_subscription.status == SubscriptionStatus.ACTIVE
        assert result["canceled"] is True
        assert result["immediately"] is False
        assert result["cancel_at"] == active_subscription.current_period_end

    def test_cancel_immediately(self, active_subscription, mock_stripe_adapter):
        result = SubscriptionService(mock_stripe_adapter).cancel(
            active_subscription.customer.user, immediately=True
        )

        mock_stripe_adapter.cancel_subscription.assert_called_once_with("sub_test_active")
        active_subscription.refresh_from_db()
        assert active_subscription.status == SubscriptionStatus.CANCELED
        assert active_subscription.ended_at is not None
        assert result["cancel_at"] is None

    def test_requires_customer(self, user, mock_stripe_adapter):
        with pytest.raises(CustomerNotFoundError):
            SubscriptionService(mock_stripe_adapter).cancel(user)

    def test_requires_active_subscription(self, customer, mock_stripe_adapter):
        SubscriptionFactory(customer=customer, status=SubscriptionStatus.CANCELED)

        with pytest.raises(NoActiveSubscriptionError):
            SubscriptionService(mock_stripe_adapter).cancel(customer.user)

    def test_stripe_failure_leaves_local_row(self, active_subscription, mock_stripe_adapter):
        mock_stripe_adapter.update_subscription.side_effect = StripeAPIUnavailableError("down")

        with pytest.raises(StripeAPIUnavailableError):
            SubscriptionService(mock_stripe_adapter).cancel(active_subscription.customer.user)

        active_subscription.refresh_from_db()
        assert active_subscription.cancel_at_period_end is False

    def test_records_canceled_event(self, active_subscription, mock_stripe_adapter):
        with patch("billing.services.subscriptions.record_business_event") as mock_record:
            SubscriptionService(mock_stripe_adapter).cancel(
                active_subscription.customer.user, immediately=True
            )

        event_type, data = mock_record.call_args.args
        assert event_type == BusinessEventType.SUBSCRIPTION_CANCELED
        assert data["subscriptionId"] == "sub_test_active"
        assert data["immediately"] is True


@pytest.mark.django_db
class TestResume:
    def test_resume(self, canceling_subscription, mock_stripe_adapter):
        Subscription.objects.filter(pk=canceling_subscription.pk).update(
            canceled_at=timezone.now()
        )

        result = SubscriptionService(mock_stripe_adapter).resume(
            canceling_subscription.customer.user
        )

        mock_stripe_adapter.update_subscription.assert_called_once_with(
            "sub_test_canceling", cancel_at_period_end=False
        )
        canceling_subscription.refresh_from_db()
        assert canceling_subscription.cancel_at_period_end is False
        assert canceling_subscription.canceled_at is None
        assert result["resumed"] is True
        assert result["status"] == SubscriptionStatus.ACTIVE

    def test_nothing_to_resume(self, active_subscription, mock_stripe_adapter):
        with pytest.raises(NoResumableSubscriptionError):
            SubscriptionService(mock_stripe_adapter).resume(active_subscription.customer.user)

        mock_stripe_adapter.update_subscription.assert_not_called()

    def test_ended_subscription_cannot_resume(self, customer, mock_stripe_adapter):
        SubscriptionFactory(
            customer=customer,
            status=SubscriptionStatus.CANCELED,
            cancel_at_period_end=True,
        )

        with pytest.raises(NoResumableSubscriptionError):
            SubscriptionService(mock_stripe_adapter).resume(customer.user)
