"""Test data builders."""

from polyindex.models import Market


def make_market(market_id: str, **fields) -> Market:
    fields.setdefault("question", f"Question {market_id}?")
    fields.setdefault("outcomes", ["Yes", "No"])
    return Market(id=market_id, **fields)
