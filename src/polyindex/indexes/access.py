"""Ownership and visibility rules as pure functions of caller and resource."""

from __future__ import annotations

from datetime import datetime, timezone

from polyindex.models import IndexFilters
from polyindex.timestamps import parse_timestamp


def is_owner(caller_id: str | None, owner_id: str | None) -> bool:
    # System indexes (owner None) belong to nobody.
    return caller_id is not None and owner_id is not None and caller_id == owner_id


def can_view(caller_id: str | None, owner_id: str | None, is_public: bool) -> bool:
    return is_public or is_owner(caller_id, owner_id)


def can_star(caller_id: str | None, owner_id: str | None, is_public: bool) -> bool:
    return can_view(caller_id, owner_id, is_public)


def is_expired(filters: IndexFilters | None, now: datetime | None = None) -> bool:
    """True when a dynamic index's max end date has already passed."""
    if filters is None or not filters.max_end_date:
        return False
    max_end = parse_timestamp(filters.max_end_date)
    if max_end is None:
        return False
    return max_end < (now or datetime.now(timezone.utc))
