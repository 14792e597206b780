"""Gamma events normalisation and the market source."""

import json

import httpx

from polyindex.ingestion.polymarket.gamma import GammaMarketSource, fetch_markets, market_categories, parse_event


def _event(**overrides):
    event = {
        "id": "16085",
        "slug": "bitcoin-above-150k",
        "title": "Bitcoin above $150k?",
        "description": "Resolves YES if BTC trades above $150k.",
        "endDate": "2026-12-31T12:00:00Z",
        "active": True,
        "closed": False,
        "volume": "1234567.89",
        "liquidity": "45000.5",
        "image": "https://example.com/btc.png",
        "tags": [{"label": "Crypto"}, {"label": "Politics"}],
        "markets": [{"id": "m1", "outcomes": '["Yes", "No"]', "outcomePrices": '["0.81", "0.19"]'}],
    }
    event.update(overrides)
    return event


def test_parse_event_stringified_fields():
    m = parse_event(_event())
    assert m.id == "16085"
    assert m.slug == "bitcoin-above-150k"
    assert m.question == "Bitcoin above $150k?"
    assert m.category == "Crypto"
    assert m.volume == 1234567.89
    assert m.liquidity == 45000.5
    assert m.outcomes == ["Yes", "No"]
    assert m.outcome_prices == [0.81, 0.19]
    assert m.end_date == "2026-12-31T12:00:00Z"


def test_parse_event_fallbacks():
    raw = _event(
        id=None,
        title=None,
        liquidity=None,
        liquidityClob="12.5",
        image=None,
        icon="https://example.com/icon.png",
        tags=None,
        markets=[{"outcomes": ["Up", "Down"], "outcomePrices": [0.3, "0.7"]}],
    )
    m = parse_event(raw)
    assert m.id == "bitcoin-above-150k"
    assert m.question == "bitcoin-above-150k"
    assert m.liquidity == 12.5
    assert m.image == "https://example.com/icon.png"
    assert m.category == "Other"
    assert m.outcomes == ["Up", "Down"]
    assert m.outcome_prices == [0.3, 0.7]


def test_parse_event_bad_outcomes_keep_defaults():
    m = parse_event(_event(markets=[{"outcomes": "not json", "outcomePrices": '["0.9", "0.1"]'}]))
    assert m.outcomes == ["Yes", "No"]
    assert m.outcome_prices == [0.5, 0.5]
    m = parse_event(_event(markets=[{}]))
    assert m.outcome_prices == [0.5, 0.5]


def test_fetch_markets_passes_params_and_skips_unlistable():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        body = [
            _event(),
            _event(id="2", closed=True),
            _event(id="3", active=False),
            _event(id="4", markets=[]),
        ]
        return httpx.Response(200, content=json.dumps(body))

    client = httpx.Client(transport=httpx.MockTransport(handler))
    markets = fetch_markets(
        base_url="https://gamma.test/",
        offset=40,
        limit=20,
        end_date_before="2027-01-01",
        client=client,
    )
    assert [m.id for m in markets] == ["16085"]
    assert seen["path"] == "/events"
    assert seen["params"] == {
        "active": "true",
        "closed": "false",
        "limit": "20",
        "offset": "40",
        "end_date_before": "2027-01-01",
    }


def test_parse_event_tolerates_odd_shapes():
    m = parse_event(_event(tags=[{"label": 2024}, {"label": "Crypto"}, "nba"], markets={"0": {}}))
    assert m.category == "Crypto"
    assert m.outcomes == ["Yes", "No"]
    assert m.outcome_prices == [0.5, 0.5]
    assert parse_event(_event(tags={"label": "Crypto"}, markets=["not a market"])).category == "Other"


def test_malformed_events_do_not_sink_the_page():
    body = [
        _event(),
        _event(id="2", tags=[{"label": 2024}]),
        _event(id="3", markets={"0": {}}),
        _event(id="4", description={"text": "not a string"}),
    ]
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=body)))
    source = GammaMarketSource(base_url="https://gamma.test", client=client)
    markets = source.fetch()
    assert [m.id for m in markets] == ["16085", "2", "3"]
    assert markets[1].category == "Other"
    assert markets[2].outcome_prices == [0.5, 0.5]


def test_market_source_returns_empty_on_upstream_failure():
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(502)))
    source = GammaMarketSource(base_url="https://gamma.test", client=client)
    assert source.fetch() == []
    assert source.snapshot() == []


def test_snapshot_uses_snapshot_limit():
    limits = []

    def handler(request: httpx.Request) -> httpx.Response:
        limits.append(request.url.params["limit"])
        return httpx.Response(200, json=[])

    source = GammaMarketSource(
        base_url="https://gamma.test",
        snapshot_limit=100,
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    source.snapshot()
    assert limits == ["100"]


def test_market_categories_sorted_distinct():
    markets = [parse_event(_event(id=str(i), tags=[{"label": t}])) for i, t in enumerate(["nba", "crypto", "nfl"])]
    assert market_categories(markets) == ["Crypto", "Sports"]
