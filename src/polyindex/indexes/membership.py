"""Resolve which snapshot markets belong to an index."""

from __future__ import annotations

from polyindex.indexes.filters import filter_markets
from polyindex.models import DynamicMembership, Index, Market


def resolve_index_markets(index: Index, markets: list[Market]) -> list[Market]:
    """Dynamic indexes re-run their filters; static ones pick listed ids in listed order.

    Static ids missing from the snapshot (closed or beyond the snapshot window) are skipped.
    """
    if isinstance(index.membership, DynamicMembership):
        return filter_markets(markets, index.membership.filters)
    by_id = {m.id: m for m in markets}
    return [by_id[mid] for mid in index.membership.market_ids if mid in by_id]


def total_volume(markets: list[Market]) -> float:
    return sum(m.volume for m in markets)
