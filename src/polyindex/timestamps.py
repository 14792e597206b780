"""Timestamp helpers: ISO parsing for filter bounds, ms epoch for storage."""

from __future__ import annotations

import time
from datetime import datetime, timezone


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 date or datetime as an aware UTC datetime. None if unparseable.

    Date-only values ("2025-12-31") mean midnight UTC. A trailing "Z" is accepted.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def now_ms() -> int:
    return int(time.time() * 1000)


def from_ms(ms: int | None) -> datetime | None:
    if ms is None:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def to_ms(dt: datetime | None) -> int | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
