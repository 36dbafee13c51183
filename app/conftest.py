"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import django
import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Price ids the catalog resolves to during tests
TEST_PRICE_IDS = {
    "starter_monthly": "price_starter_monthly",
    "starter_yearly": "price_starter_yearly",
    "pro_monthly": "price_pro_monthly",
    "pro_yearly": "price_pro_yearly",
    "enterprise_monthly": "price_enterprise_monthly",
    "enterprise_yearly": "price_enterprise_yearly",
    "credits_100": "price_credits_100",
    "credits_500": "price_credits_500",
    "credits_1000": "price_credits_1000",
}


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Use fast password hasher for tests
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_views.py, test_services.py, test_tasks.py, etc. → integration
    - test_models.py, test_events.py, test_plans.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_handlers.py",
        "test_processing.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_managers.py",
        "test_events.py",
        "test_plans.py",
        "test_analytics.py",
        "test_stripe_adapter.py",
        "test_serializers.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def stripe_price_ids(settings):
    """Deterministic catalog price ids for every test."""
    settings.STRIPE_PRICE_IDS = dict(TEST_PRICE_IDS)
    return settings.STRIPE_PRICE_IDS


@pytest.fixture(autouse=True)
def clear_cache():
    """Analytics counters live in the cache; start each test empty."""
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()
