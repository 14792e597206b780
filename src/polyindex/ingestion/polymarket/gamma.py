"""Polymarket Gamma API client - event listing normalised into Market records."""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from polyindex.ingestion.polymarket.categories import classify_tags
from polyindex.models import Market

log = structlog.get_logger(__name__)

GAMMA_API_BASE = "https://gamma-api.polymarket.com"

DEFAULT_OUTCOMES = ["Yes", "No"]
DEFAULT_PRICES = [0.5, 0.5]


def _json_list(value: str | list[Any] | None) -> list[Any] | None:
    """Gamma returns some arrays as JSON-encoded strings. None if absent or malformed."""
    if isinstance(value, list):
        return value
    if isinstance(value, str) and value:
        try:
            parsed = json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return None
        return parsed if isinstance(parsed, list) else None
    return None


def _float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _parse_outcomes(market: dict[str, Any]) -> tuple[list[str], list[float]]:
    """Outcome names and prices of an event's first market, defaulting to a 50/50 Yes/No."""
    outcomes = list(DEFAULT_OUTCOMES)
    prices = list(DEFAULT_PRICES)
    names = _json_list(market.get("outcomes"))
    if names is None and market.get("outcomes") is not None:
        log.warning("outcomes_unparseable", market_id=market.get("id"))
        return outcomes, prices
    if names is not None:
        outcomes = [str(n) for n in names]
    raw_prices = _json_list(market.get("outcomePrices"))
    if raw_prices is not None:
        try:
            prices = [float(p) for p in raw_prices]
        except (TypeError, ValueError):
            log.warning("outcome_prices_unparseable", market_id=market.get("id"))
    return outcomes, prices


def parse_event(raw: dict[str, Any]) -> Market:
    """Convert a Gamma /events object into a Market."""
    tags = raw.get("tags")
    if not isinstance(tags, list):
        tags = []
    labels = [t["label"] for t in tags if isinstance(t, dict) and isinstance(t.get("label"), str)]
    # Outcomes come from the event's first market; anything but a list of objects means defaults.
    markets = raw.get("markets")
    first = markets[0] if isinstance(markets, list) and markets else None
    if isinstance(first, dict):
        outcomes, prices = _parse_outcomes(first)
    else:
        outcomes, prices = list(DEFAULT_OUTCOMES), list(DEFAULT_PRICES)
    slug = raw.get("slug")
    return Market(
        id=str(raw.get("id") or slug or ""),
        slug=slug,
        question=raw.get("title") or slug or "",
        description=raw.get("description"),
        end_date=raw.get("endDate"),
        category=classify_tags(labels),
        volume=_float(raw.get("volume")),
        liquidity=_float(raw.get("liquidity") or raw.get("liquidityClob")),
        image=raw.get("image") or raw.get("icon"),
        outcomes=outcomes,
        outcome_prices=prices,
    )


def _is_listable(raw: dict[str, Any]) -> bool:
    return bool(raw.get("active")) and not raw.get("closed") and bool(raw.get("markets"))


def fetch_markets(
    base_url: str | None = None,
    offset: int = 0,
    limit: int = 20,
    end_date_before: str | None = None,
    end_date_after: str | None = None,
    timeout: float = 30.0,
    client: httpx.Client | None = None,
) -> list[Market]:
    """Fetch active events from Gamma and return them as Markets. Raises on HTTP errors."""
    url = (base_url or GAMMA_API_BASE).rstrip("/") + "/events"
    params: dict[str, Any] = {
        "active": "true",
        "closed": "false",
        "limit": limit,
        "offset": offset,
    }
    if end_date_before:
        params["end_date_before"] = end_date_before
    if end_date_after:
        params["end_date_after"] = end_date_after
    if client is None:
        with httpx.Client(timeout=timeout) as owned:
            resp = owned.get(url, params=params)
    else:
        resp = client.get(url, params=params)
    resp.raise_for_status()
    data = resp.json()
    if not isinstance(data, list):
        data = data.get("data", []) if isinstance(data, dict) else []
    markets = []
    for row in data:
        if not isinstance(row, dict) or not _is_listable(row):
            continue
        try:
            markets.append(parse_event(row))
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            log.warning("skip_event", event_id=row.get("id"), error=str(e))
    return markets


def market_categories(markets: list[Market]) -> list[str]:
    """Sorted distinct categories present in a market list."""
    return sorted({m.category for m in markets})


class GammaMarketSource:
    """Market source used by the API. Failed fetches yield an empty list, never an error."""

    def __init__(
        self,
        base_url: str = GAMMA_API_BASE,
        timeout: float = 30.0,
        snapshot_limit: int = 100,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.snapshot_limit = snapshot_limit
        self._client = client

    def fetch(
        self,
        offset: int = 0,
        limit: int = 20,
        end_date_before: str | None = None,
        end_date_after: str | None = None,
    ) -> list[Market]:
        try:
            return fetch_markets(
                base_url=self.base_url,
                offset=offset,
                limit=limit,
                end_date_before=end_date_before,
                end_date_after=end_date_after,
                timeout=self.timeout,
                client=self._client,
            )
        except (httpx.HTTPError, ValueError) as e:
            log.warning("markets_fetch_failed", offset=offset, limit=limit, error=str(e))
            return []

    def snapshot(self) -> list[Market]:
        """The market set used for curated generation and dynamic index evaluation."""
        return self.fetch(offset=0, limit=self.snapshot_limit)
