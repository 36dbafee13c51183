"""
Small helpers shared by billing webhooks and services.
"""

from __future__ import annotations

from datetime import datetime, timezone as dt_timezone
from typing import Any


def from_unix_timestamp(value: Any) -> datetime | None:
    """
    Convert Stripe epoch seconds to an aware UTC datetime.

    None and the empty string stay None; 0 is the epoch.

    Example:
        >>> from_unix_timestamp(1000)
        datetime.datetime(1970, 1, 1, 0, 16, 40, tzinfo=datetime.timezone.utc)
    """
    if value is None or value == "":
        return None
    return datetime.fromtimestamp(int(value), tz=dt_timezone.utc)


def to_unix_timestamp(value: datetime | None) -> int | None:
    if value is None:
        return None
    return int(value.timestamp())


def parse_local_id(value: Any) -> int | None:
    """
    Parse a string-encoded local primary key from Stripe metadata.

    Stripe metadata values are always strings; anything that is not a
    positive integer yields None.
    """
    if value is None:
        return None
    try:
        parsed = int(str(value).strip())
    except ValueError:
        return None
    return parsed if parsed > 0 else None
