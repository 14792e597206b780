"""Canonical schema (Pydantic) - Market, Index, User."""

from polyindex.models.index import (
    SYSTEM_USERNAME,
    DynamicMembership,
    Index,
    IndexDraft,
    IndexFilters,
    Membership,
    StaticMembership,
)
from polyindex.models.market import Market
from polyindex.models.user import User

__all__ = [
    "Market",
    "Index",
    "IndexDraft",
    "IndexFilters",
    "Membership",
    "StaticMembership",
    "DynamicMembership",
    "SYSTEM_USERNAME",
    "User",
]
