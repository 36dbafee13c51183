"""
Typed decoding of Stripe webhook payloads.

Each handler decodes ``payload["data"]["object"]`` into one of the frozen
dataclasses below before touching the database. Optional fields default to
None (or a neutral value); a missing required field raises
MalformedPayloadError, which handlers log at error and acknowledge.

Epoch-second timestamps are converted to aware datetimes here, so handlers
only ever see ``datetime | None``.

Usage:
    from billing.webhooks.events import SubscriptionEvent

    subscription = SubscriptionEvent.from_payload(webhook_event.get_data_object())
    subscription.price_id          # "price_xxx" or None
    subscription.current_period_end  # datetime or None
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from billing.exceptions import MalformedPayloadError
from billing.states import SubscriptionStatus
from billing.utils import from_unix_timestamp, parse_local_id


# =============================================================================
# Field Helpers
# =============================================================================


def _require(data: dict[str, Any], key: str, object_name: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise MalformedPayloadError(
            f"{object_name} payload missing '{key}'",
            details={"field": key, "object": object_name},
        )
    return value


def _expandable_id(value: Any) -> str | None:
    """
    Id of a Stripe field that is either an id string or an expanded object.

    ``"cus_123"`` and ``{"id": "cus_123", ...}`` both give ``"cus_123"``.
    """
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        return value.get("id") or None
    return None


def _metadata(data: dict[str, Any]) -> dict[str, str]:
    metadata = data.get("metadata")
    return dict(metadata) if isinstance(metadata, dict) else {}


def _first_item(data: dict[str, Any]) -> dict[str, Any]:
    """First subscription item, or {} when the subscription has none."""
    items = data.get("items")
    if isinstance(items, dict):
        entries = items.get("data") or []
    elif isinstance(items, list):
        entries = items
    else:
        entries = []
    first = entries[0] if entries else None
    return first if isinstance(first, dict) else {}


def _int_or_zero(value: Any) -> int:
    return int(value) if value is not None else 0


# =============================================================================
# Event Types
# =============================================================================


@dataclass(frozen=True)
class CheckoutSessionEvent:
    """checkout.session.completed"""

    id: str
    mode: str | None = None
    customer_id: int | None = None
    stripe_customer_id: str | None = None
    amount_total: int | None = None
    currency: str | None = None
    payment_intent_id: str | None = None
    subscription_id: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> CheckoutSessionEvent:
        metadata = _metadata(data)
        amount_total = data.get("amount_total")
        return cls(
            id=_require(data, "id", "checkout.session"),
            mode=data.get("mode"),
            customer_id=parse_local_id(metadata.get("customerId")),
            stripe_customer_id=_expandable_id(data.get("customer")),
            amount_total=int(amount_total) if amount_total is not None else None,
            currency=data.get("currency"),
            payment_intent_id=_expandable_id(data.get("payment_intent")),
            subscription_id=_expandable_id(data.get("subscription")),
            metadata=metadata,
        )


@dataclass(frozen=True)
class CustomerEvent:
    """customer.created"""

    id: str
    email: str | None = None
    name: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> CustomerEvent:
        return cls(
            id=_require(data, "id", "customer"),
            email=data.get("email"),
            name=data.get("name"),
            metadata=_metadata(data),
        )


@dataclass(frozen=True)
class SubscriptionEvent:
    """
    customer.subscription.created / updated

    Newer Stripe API versions report the billing period on the subscription
    item instead of the subscription; both locations are read.
    """

    id: str
    status: str
    customer_id: str | None = None
    price_id: str | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False
    canceled_at: datetime | None = None
    ended_at: datetime | None = None
    trial_start: datetime | None = None
    trial_end: datetime | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> SubscriptionEvent:
        subscription_id = _require(data, "id", "subscription")
        status = _require(data, "status", "subscription")
        if status not in SubscriptionStatus.values:
            raise MalformedPayloadError(
                f"subscription payload has unknown status '{status}'",
                details={"field": "status", "object": "subscription", "value": status},
            )

        item = _first_item(data)
        price = item.get("price")
        period_start = data.get("current_period_start", item.get("current_period_start"))
        period_end = data.get("current_period_end", item.get("current_period_end"))

        return cls(
            id=subscription_id,
            status=status,
            customer_id=_expandable_id(data.get("customer")),
            price_id=_expandable_id(price),
            current_period_start=from_unix_timestamp(period_start),
            current_period_end=from_unix_timestamp(period_end),
            cancel_at_period_end=bool(data.get("cancel_at_period_end", False)),
            canceled_at=from_unix_timestamp(data.get("canceled_at")),
            ended_at=from_unix_timestamp(data.get("ended_at")),
            trial_start=from_unix_timestamp(data.get("trial_start")),
            trial_end=from_unix_timestamp(data.get("trial_end")),
            metadata=_metadata(data),
        )


@dataclass(frozen=True)
class SubscriptionDeletedEvent:
    """
    customer.subscription.deleted

    Only the id is required. The final status is always canceled, so the
    payload's own status is not read.
    """

    id: str
    canceled_at: datetime | None = None
    ended_at: datetime | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> SubscriptionDeletedEvent:
        return cls(
            id=_require(data, "id", "subscription"),
            canceled_at=from_unix_timestamp(data.get("canceled_at")),
            ended_at=from_unix_timestamp(data.get("ended_at")),
        )


@dataclass(frozen=True)
class InvoiceEvent:
    """
    invoice.paid / invoice.payment_failed

    The subscription reference moved from ``invoice.subscription`` to
    ``invoice.parent.subscription_details.subscription`` in newer Stripe API
    versions; both are read.
    """

    id: str
    customer_id: str | None = None
    subscription_id: str | None = None
    amount_due: int = 0
    amount_paid: int = 0
    currency: str = "usd"
    hosted_invoice_url: str | None = None
    invoice_pdf: str | None = None
    period_start: datetime | None = None
    period_end: datetime | None = None

    @property
    def is_subscription(self) -> bool:
        return self.subscription_id is not None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> InvoiceEvent:
        subscription_id = _expandable_id(data.get("subscription"))
        if subscription_id is None:
            parent = data.get("parent")
            details = parent.get("subscription_details") if isinstance(parent, dict) else None
            if isinstance(details, dict):
                subscription_id = _expandable_id(details.get("subscription"))

        return cls(
            id=_require(data, "id", "invoice"),
            customer_id=_expandable_id(data.get("customer")),
            subscription_id=subscription_id,
            amount_due=_int_or_zero(data.get("amount_due")),
            amount_paid=_int_or_zero(data.get("amount_paid")),
            currency=data.get("currency") or "usd",
            hosted_invoice_url=data.get("hosted_invoice_url"),
            invoice_pdf=data.get("invoice_pdf"),
            period_start=from_unix_timestamp(data.get("period_start")),
            period_end=from_unix_timestamp(data.get("period_end")),
        )


@dataclass(frozen=True)
class PaymentIntentEvent:
    """payment_intent.succeeded / payment_intent.payment_failed"""

    id: str
    amount: int | None = None
    currency: str | None = None
    status: str | None = None
    last_payment_error_message: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> PaymentIntentEvent:
        last_error = data.get("last_payment_error")
        amount = data.get("amount")
        return cls(
            id=_require(data, "id", "payment_intent"),
            amount=int(amount) if amount is not None else None,
            currency=data.get("currency"),
            status=data.get("status"),
            last_payment_error_message=(
                last_error.get("message") if isinstance(last_error, dict) else None
            ),
        )
