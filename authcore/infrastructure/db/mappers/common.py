from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def as_str(value: Any) -> str:
    return str(value)


def to_iso(value: datetime | None) -> str | None:
    # Fixed-width UTC text so lexical comparison in SQL matches time order.
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
