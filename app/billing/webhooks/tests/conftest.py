"""
Fixtures for webhook tests.

``stripe_event`` stores a WebhookEvent around a Stripe data object, the
way the webhook view would after signature verification.
"""

import pytest

from billing.tests.factories import CustomerFactory, WebhookEventFactory, build_event


@pytest.fixture
def stripe_customer(db):
    """Customer with Stripe id cus_1 and local id 7."""
    return CustomerFactory(id=7, stripe_customer_id="cus_1")


@pytest.fixture
def stripe_event(db):
    """
    Factory fixture for stored webhook events.

    Usage:
        event = stripe_event("invoice.paid", {"id": "in_1", "customer": "cus_1"})
    """
    counter = {"n": 0}

    def make(event_type: str, data_object: dict, **kwargs):
        counter["n"] += 1
        event_id = kwargs.pop("stripe_event_id", f"evt_{event_type}_{counter['n']}")
        return WebhookEventFactory(
            stripe_event_id=event_id,
            event_type=event_type,
            payload=build_event(event_type, data_object, event_id=event_id),
            **kwargs,
        )

    return make
