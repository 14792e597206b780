"""Rule-based market filter used by dynamic indexes and the create-index preview."""

from __future__ import annotations

from typing import Callable

from polyindex.models import IndexFilters, Market
from polyindex.timestamps import parse_timestamp


def _predicates(filters: IndexFilters) -> list[Callable[[Market], bool]]:
    """One predicate per present filter field. All must hold for a market to match."""
    checks: list[Callable[[Market], bool]] = []

    if filters.categories:
        wanted = set(filters.categories)
        checks.append(lambda m: m.category in wanted)

    if filters.min_volume is not None:
        min_volume = filters.min_volume
        checks.append(lambda m: m.volume >= min_volume)

    if filters.max_volume is not None:
        max_volume = filters.max_volume
        checks.append(lambda m: m.volume <= max_volume)

    if filters.min_liquidity is not None:
        min_liquidity = filters.min_liquidity
        checks.append(lambda m: m.liquidity >= min_liquidity)

    # Markets without a parseable end date fail any date bound.
    max_date = parse_timestamp(filters.max_end_date)
    if max_date is not None:
        checks.append(lambda m: (end := parse_timestamp(m.end_date)) is not None and end <= max_date)

    min_date = parse_timestamp(filters.min_end_date)
    if min_date is not None:
        checks.append(lambda m: (end := parse_timestamp(m.end_date)) is not None and end >= min_date)

    if filters.keywords:
        keywords = [k.lower() for k in filters.keywords if k]

        def has_keyword(m: Market) -> bool:
            question = m.question.lower()
            description = (m.description or "").lower()
            return any(k in question or k in description for k in keywords)

        if keywords:
            checks.append(has_keyword)

    return checks


def filter_markets(markets: list[Market], filters: IndexFilters | None) -> list[Market]:
    """Return the markets satisfying every present filter, in input order.

    With no filters (None or all fields absent) the input list itself is returned.
    """
    if filters is None or filters.is_empty():
        return markets
    checks = _predicates(filters)
    if not checks:
        return markets
    return [m for m in markets if all(check(m) for check in checks)]
