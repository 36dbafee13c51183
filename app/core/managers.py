"""
Base QuerySet for domain managers.

Domain apps subclass BaseQuerySet to add lookups that read like the
operations they serve (for example ``Subscription.objects.find_active_by_customer_id``)
and attach them with ``QuerySet.as_manager()``.

Manager vs QuerySet:
    - QuerySet: Defines chainable methods (filter, exclude, etc.)
    - Manager: Attaches QuerySet to model, defines table-level operations

Usage:
    class InvoiceQuerySet(BaseQuerySet):
        def paid(self):
            return self.filter(status="paid")

    class Invoice(BaseModel):
        objects = InvoiceQuerySet.as_manager()

    Invoice.objects.paid().newest()[:10]
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import models

if TYPE_CHECKING:
    from datetime import date, datetime


class BaseQuerySet(models.QuerySet):
    """
    QuerySet with common time-based helpers.

    Methods:
        created_between(start, end): Filter by creation date range
        updated_since(since): Filter records updated after a point in time
        newest(): Newest first
        oldest(): Oldest first

    Note:
        All methods assume the model has created_at and updated_at fields
        (provided by BaseModel).
    """

    def created_between(
        self,
        start: datetime | date,
        end: datetime | date,
    ) -> BaseQuerySet:
        """
        Filter records created within a date range (inclusive).

        Args:
            start: Start date/datetime
            end: End date/datetime

        Returns:
            Filtered queryset
        """
        return self.filter(created_at__gte=start, created_at__lte=end)

    def updated_since(self, since: datetime | date) -> BaseQuerySet:
        """
        Filter records updated after a given date.

        Args:
            since: Date/datetime to filter from

        Returns:
            QuerySet of records updated after the date
        """
        return self.filter(updated_at__gt=since)

    def oldest(self) -> BaseQuerySet:
        """Order by creation date ascending (oldest first)."""
        return self.order_by("created_at", "pk")

    def newest(self) -> BaseQuerySet:
        """
        Order by creation date descending (newest first).

        The primary key breaks ties between rows created in the same
        instant, which happens routinely in tests and bulk imports.
        """
        return self.order_by("-created_at", "-pk")
