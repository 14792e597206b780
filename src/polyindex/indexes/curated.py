"""Curated (system) indexes derived from the current market snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from polyindex.indexes.ids import curated_index_id
from polyindex.models import SYSTEM_USERNAME, Index, Market, StaticMembership

CURATED_SIZE = 20


def _high_conviction(m: Market) -> bool:
    top = m.max_price
    return top is not None and (top > 0.75 or top < 0.25)


def _coin_flip(m: Market) -> bool:
    top = m.max_price
    return top is not None and 0.40 <= top <= 0.60


@dataclass(frozen=True)
class CuratedRule:
    key: str
    name: str
    description: str
    category: str
    selects: Callable[[Market], bool]


CURATED_RULES: tuple[CuratedRule, ...] = (
    CuratedRule(
        key="curated-high-conviction",
        name="High Conviction",
        description="Markets with strong directional probability and high trading volume",
        category="Finance",
        selects=_high_conviction,
    ),
    CuratedRule(
        key="curated-coin-flip",
        name="Coin Flip",
        description="Highly contested markets with near 50/50 odds",
        category="Finance",
        selects=_coin_flip,
    ),
    CuratedRule(
        key="curated-crypto-watch",
        name="Crypto Watch",
        description="Top cryptocurrency prediction markets by trading volume",
        category="Crypto",
        selects=lambda m: m.category == "Crypto",
    ),
    CuratedRule(
        key="curated-politics-power",
        name="Politics & Power",
        description="Key political and geopolitical events shaping the world",
        category="Politics",
        selects=lambda m: m.category in ("Politics", "Geopolitics"),
    ),
    CuratedRule(
        key="curated-tech-futures",
        name="Tech Futures",
        description="AI, big tech, and emerging technology predictions",
        category="Tech",
        selects=lambda m: m.category == "Tech",
    ),
)


def top_by_volume(markets: list[Market], limit: int = CURATED_SIZE) -> list[Market]:
    """Highest volume first; sorted() is stable so ties keep snapshot order."""
    return sorted(markets, key=lambda m: m.volume, reverse=True)[:limit]


def generate_curated_indexes(markets: list[Market], now: datetime | None = None) -> list[Index]:
    """Build the curated indexes for a snapshot. Rules with no matching markets are omitted."""
    now = now or datetime.now(timezone.utc)
    indexes: list[Index] = []
    for rule in CURATED_RULES:
        selected = top_by_volume([m for m in markets if rule.selects(m)])
        if not selected:
            continue
        indexes.append(
            Index(
                id=curated_index_id(rule.key),
                name=rule.name,
                description=rule.description,
                created_by=None,
                created_by_username=SYSTEM_USERNAME,
                is_public=True,
                category=rule.category,
                membership=StaticMembership(market_ids=[m.id for m in selected]),
                created_at=now,
                updated_at=now,
            )
        )
    return indexes
