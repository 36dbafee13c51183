"""
Abstract base model shared by every persisted billing entity.

Base Classes:
    BaseModel: Abstract model with timestamps (created_at, updated_at)

For reusable field bundles (MetadataMixin), see core.model_mixins.

Usage:
    from core.models import BaseModel
    from core.model_mixins import MetadataMixin

    class Customer(MetadataMixin, BaseModel):
        stripe_customer_id = models.CharField(max_length=255, unique=True)

Note:
    - List mixins before BaseModel in the bases
    - Primary keys are the project default (BigAutoField), so every row
      has a numeric local id
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model providing creation and modification timestamps.

    Fields:
        created_at: Set once when the row is inserted
        updated_at: Refreshed on every save()

    Note:
        QuerySet.update() bypasses auto_now, so bulk updates that should
        move updated_at must set it explicitly (see billing.managers).
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last modified",
    )

    class Meta:
        abstract = True
        # Newest first
        ordering = ["-created_at"]

    def __str__(self) -> str:
        """Default string representation using primary key."""
        return f"{self.__class__.__name__}(id={self.pk})"
