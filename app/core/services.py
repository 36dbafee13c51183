"""
Service layer primitives.

- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with logging and transaction helpers

Pattern:
    - ServiceResult for expected outcomes (a webhook that cannot be
      attributed to a local customer, a handler that found nothing to do)
    - Exceptions for unexpected failures (database errors, provider outages)

Usage:
    from core.services import BaseService, ServiceResult

    class CheckoutService(BaseService):
        def create_payment_checkout(self, user, checkout):
            with self.atomic():
                customer = Customer.objects.create(...)
            ...

    # In a webhook handler
    if not customer:
        return ServiceResult.success(None)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code

    Usage:
        return ServiceResult.success(subscription)
        return ServiceResult.failure("Price mismatch", "PRICE_MISMATCH")

        result = dispatch_webhook(webhook_event)
        if result:
            webhook_event.mark_processed()
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data (None for acknowledged no-ops)
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code
        """
        return cls(success=False, error=error, error_code=error_code)

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides:
    - Logging setup per service
    - Database transaction management

    Services that talk to Stripe receive their StripeAdapter in the
    constructor.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for easy filtering.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Thin wrapper around ``transaction.atomic()`` that makes transaction
        boundaries explicit in service code. Nested use creates savepoints.
        """
        with transaction.atomic():
            yield
