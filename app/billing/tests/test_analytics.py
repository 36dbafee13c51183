"""
Tests for business event recording.

Tests cover:
- Log sink output
- Cache sink daily counters
- Disabled recording
- Recording never raising
"""

import logging
from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone
from freezegun import freeze_time

from billing.analytics import (
    BusinessEventType,
    SINK_CACHE,
    get_event_count,
    record_business_event,
)


class TestLogSink:
    def test_logs_event_with_structured_data(self, caplog):
        with caplog.at_level(logging.INFO, logger="billing.analytics"):
            record_business_event(
                BusinessEventType.PAYMENT_SUCCEEDED,
                {"customerId": 7, "amount": 999},
                metadata={"source": "webhook"},
            )

        record = next(r for r in caplog.records if r.name == "billing.analytics")
        assert record.event_type == "payment.succeeded"
        assert record.event_data == {"customerId": 7, "amount": 999}
        assert record.event_metadata == {"source": "webhook"}
        assert record.timestamp_ms > 0

    def test_log_sink_does_not_count(self):
        record_business_event(BusinessEventType.CHECKOUT_STARTED, {})

        assert get_event_count(BusinessEventType.CHECKOUT_STARTED) == 0

    def test_disabled_records_nothing(self, settings, caplog):
        settings.BILLING_ANALYTICS_ENABLED = False

        with caplog.at_level(logging.INFO, logger="billing.analytics"):
            record_business_event(BusinessEventType.CHECKOUT_STARTED, {"userId": 1})

        assert not [r for r in caplog.records if r.name == "billing.analytics"]


class TestCacheSink:
    @pytest.fixture(autouse=True)
    def cache_sink(self, settings):
        settings.BILLING_ANALYTICS_SINK = SINK_CACHE

    def test_counts_per_type(self):
        record_business_event(BusinessEventType.SUBSCRIPTION_CREATED, {})
        record_business_event(BusinessEventType.SUBSCRIPTION_CREATED, {})
        record_business_event(BusinessEventType.SUBSCRIPTION_ENDED, {})

        assert get_event_count(BusinessEventType.SUBSCRIPTION_CREATED) == 2
        assert get_event_count(BusinessEventType.SUBSCRIPTION_ENDED) == 1
        assert get_event_count(BusinessEventType.PAYMENT_FAILED) == 0

    def test_counts_per_day(self):
        today = timezone.localdate()
        yesterday = today - timedelta(days=1)

        with freeze_time(timezone.now() - timedelta(days=1)):
            record_business_event(BusinessEventType.PAYMENT_FAILED, {})
        record_business_event(BusinessEventType.PAYMENT_FAILED, {})
        record_business_event(BusinessEventType.PAYMENT_FAILED, {})

        assert get_event_count(BusinessEventType.PAYMENT_FAILED, yesterday) == 1
        assert get_event_count(BusinessEventType.PAYMENT_FAILED, today) == 2

    def test_cache_failure_is_swallowed(self, caplog):
        with patch("billing.analytics.cache") as mock_cache:
            mock_cache.incr.side_effect = RuntimeError("cache down")

            with caplog.at_level(logging.WARNING, logger="billing.analytics"):
                record_business_event(BusinessEventType.PAYMENT_SUCCEEDED, {})

        assert any("Failed to record business event" in r.message for r in caplog.records)

    def test_counter_seeded_without_overwrite(self):
        with patch("billing.analytics.cache") as mock_cache:
            mock_cache.incr.return_value = 1

            record_business_event(BusinessEventType.SUBSCRIPTION_CREATED, {})

        key = mock_cache.incr.call_args.args[0]
        mock_cache.add.assert_called_once()
        assert mock_cache.add.call_args.args[:2] == (key, 0)
        mock_cache.set.assert_not_called()
