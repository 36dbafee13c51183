"""
Django app configuration for billing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.apps import AppConfig, apps

if TYPE_CHECKING:
    from billing.adapters import StripeAdapter


class BillingConfig(AppConfig):
    """Configuration for the billing application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "billing"
    verbose_name = "Billing"

    stripe_adapter: StripeAdapter | None = None

    def ready(self):
        """
        Build the process-wide StripeAdapter.

        Views, services and tasks resolve it through get_stripe_adapter()
        instead of configuring the stripe module globally.
        """
        from billing.adapters import StripeAdapter

        self.stripe_adapter = StripeAdapter.from_settings()


def get_stripe_adapter() -> StripeAdapter:
    """Return the StripeAdapter built at startup."""
    return apps.get_app_config("billing").stripe_adapter
