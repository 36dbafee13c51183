"""
Reusable abstract model mixins.

Mixins:
    MetadataMixin: Free-form JSON metadata, mirrored from provider objects

Usage:
    class Subscription(MetadataMixin, BaseModel):
        stripe_subscription_id = models.CharField(max_length=255, unique=True)

    subscription.get_meta("userId")
"""

from __future__ import annotations

from typing import Any

from django.db import models


class MetadataMixin(models.Model):
    """
    Flexible JSON metadata storage.

    Stripe objects carry a string-to-string metadata map (for example the
    ``userId`` and ``customerId`` attached at checkout). Local rows keep a
    copy so they can be correlated without another API call.

    Fields:
        metadata: JSONField holding arbitrary key-value data
    """

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Flexible key-value metadata storage",
    )

    class Meta:
        abstract = True

    def get_meta(self, key: str, default: Any = None) -> Any:
        """
        Get metadata value by key.

        Args:
            key: Metadata key
            default: Value to return if key not found

        Returns:
            Metadata value or default
        """
        return (self.metadata or {}).get(key, default)

    def set_meta(self, key: str, value: Any, save: bool = True) -> None:
        """
        Set a metadata value and optionally persist it.

        Args:
            key: Metadata key
            value: JSON-serializable value
            save: Whether to save the model (default True)
        """
        if self.metadata is None:
            self.metadata = {}
        self.metadata[key] = value
        if save:
            self.save(update_fields=["metadata", "updated_at"])

    def has_meta(self, key: str) -> bool:
        """Check if a metadata key exists."""
        return key in (self.metadata or {})
