"""
Tests for the Stripe webhook endpoint.

Signature verification is mocked through ``get_stripe_adapter``; the rest
of the pipeline (storage, dispatch, status bookkeeping) runs for real.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from django.db import DatabaseError

from billing.adapters import StripeAdapter
from billing.exceptions import StripeInvalidRequestError
from billing.models import Payment, Subscription, WebhookEvent
from billing.states import WebhookEventStatus
from billing.tests.factories import build_event

WEBHOOK_URL = "/api/v1/billing/webhooks/stripe/"


@pytest.fixture
def adapter():
    mock = MagicMock(spec=StripeAdapter)
    with patch("billing.webhooks.views.get_stripe_adapter", return_value=mock):
        yield mock


@pytest.fixture
def post_event(client, adapter):
    """Deliver ``event`` as if Stripe had signed it."""

    def post(event, signature="t=1,v1=abc"):
        adapter.verify_webhook_signature.return_value = event
        headers = {"HTTP_STRIPE_SIGNATURE": signature} if signature else {}
        return client.post(
            WEBHOOK_URL,
            data=json.dumps(event),
            content_type="application/json",
            **headers,
        )

    return post


def subscription_created(event_id="evt_sub_1"):
    return build_event(
        "customer.subscription.created",
        {
            "id": "sub_1",
            "customer": "cus_1",
            "status": "active",
            "items": {"data": [{"price": {"id": "price_pro_monthly"}}]},
            "current_period_start": 1000,
            "current_period_end": 2000,
        },
        event_id=event_id,
    )


@pytest.mark.django_db
class TestSignature:
    def test_missing_signature(self, post_event, adapter):
        response = post_event(subscription_created(), signature=None)

        assert response.status_code == 400
        adapter.verify_webhook_signature.assert_not_called()
        assert not WebhookEvent.objects.exists()

    def test_invalid_signature(self, post_event, adapter):
        adapter.verify_webhook_signature.side_effect = StripeInvalidRequestError(
            "Invalid webhook signature"
        )

        response = post_event(subscription_created())

        assert response.status_code == 400
        assert response.content == b"Invalid signature"
        assert not WebhookEvent.objects.exists()

    def test_passes_raw_body_and_header(self, client, adapter):
        adapter.verify_webhook_signature.return_value = build_event("ping", {"id": "x"})
        body = b'{"id": "evt_raw"}'

        client.post(
            WEBHOOK_URL,
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE="t=1,v1=abc",
        )

        adapter.verify_webhook_signature.assert_called_once_with(body, "t=1,v1=abc")

    def test_event_without_type(self, post_event):
        response = post_event({"id": "evt_1", "data": {"object": {}}})

        assert response.status_code == 400

    def test_get_not_allowed(self, client, adapter):
        assert client.get(WEBHOOK_URL).status_code == 405


@pytest.mark.django_db
class TestInlineProcessing:
    def test_processes_event(self, post_event, stripe_customer):
        response = post_event(subscription_created())

        assert response.status_code == 200
        assert response.content == b"Processed"
        assert Subscription.objects.get().customer == stripe_customer
        event = WebhookEvent.objects.get()
        assert event.stripe_event_id == "evt_sub_1"
        assert event.status == WebhookEventStatus.PROCESSED

    def test_unhandled_type_acknowledged(self, post_event):
        response = post_event(build_event("charge.refunded", {"id": "ch_1"}, event_id="evt_x"))

        assert response.status_code == 200
        assert WebhookEvent.objects.get().status == WebhookEventStatus.PROCESSED

    def test_duplicate_delivery_not_reprocessed(self, post_event, stripe_customer):
        post_event(subscription_created())

        with patch("billing.webhooks.views.process_event") as mock_process:
            response = post_event(subscription_created())

        assert response.status_code == 200
        assert response.content == b"Already processed"
        mock_process.assert_not_called()
        assert WebhookEvent.objects.count() == 1

    def test_handler_failure_returns_500(self, post_event, stripe_customer):
        event = build_event(
            "checkout.session.completed",
            {"id": "cs_1", "mode": "payment", "metadata": {"customerId": "7"}},
            event_id="evt_checkout",
        )

        with patch.object(Payment.objects, "create", side_effect=DatabaseError("disk full")):
            response = post_event(event)

        assert response.status_code == 500
        stored = WebhookEvent.objects.get()
        assert stored.status == WebhookEventStatus.FAILED
        assert stored.error_message == "disk full"

    def test_failed_event_is_retried_on_redelivery(self, post_event, stripe_customer):
        event = build_event(
            "checkout.session.completed",
            {"id": "cs_1", "mode": "payment", "metadata": {"customerId": "7"}},
            event_id="evt_checkout",
        )
        with patch.object(Payment.objects, "create", side_effect=DatabaseError("disk full")):
            post_event(event)

        response = post_event(event)

        assert response.status_code == 200
        stored = WebhookEvent.objects.get()
        assert stored.status == WebhookEventStatus.PROCESSED
        assert stored.retry_count == 2
        assert Payment.objects.count() == 1

    def test_swallowed_store_failure_is_acknowledged(self, post_event):
        event = build_event(
            "customer.subscription.updated",
            {"id": "sub_1", "status": "active"},
            event_id="evt_update",
        )

        with patch.object(
            Subscription.objects,
            "update_by_stripe_subscription_id",
            side_effect=DatabaseError("locked"),
        ):
            response = post_event(event)

        assert response.status_code == 200
        assert WebhookEvent.objects.get().status == WebhookEventStatus.PROCESSED


@pytest.mark.django_db
class TestAsyncProcessing:
    @pytest.fixture(autouse=True)
    def async_mode(self, settings):
        settings.BILLING_WEBHOOK_ASYNC = True

    def test_queues_event(self, post_event):
        with patch("billing.tasks.process_webhook_event.delay") as mock_delay:
            response = post_event(subscription_created())

        assert response.status_code == 200
        assert response.content == b"Accepted"
        stored = WebhookEvent.objects.get()
        mock_delay.assert_called_once_with(stored.id)
        assert stored.status == WebhookEventStatus.PENDING

    def test_broker_outage_still_accepted(self, post_event):
        with patch(
            "billing.tasks.process_webhook_event.delay",
            side_effect=ConnectionError("broker down"),
        ):
            response = post_event(subscription_created())

        assert response.status_code == 200
        assert WebhookEvent.objects.get().status == WebhookEventStatus.PENDING
