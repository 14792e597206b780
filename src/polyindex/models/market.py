"""Market - a prediction market as served to clients (never persisted)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Market(BaseModel):
    """Normalised Polymarket event. outcomes and outcome_prices are parallel arrays."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    slug: str | None = None
    question: str = ""
    description: str | None = None
    end_date: str | None = None  # ISO-8601 as returned upstream
    category: str = "Other"
    volume: float = 0.0
    liquidity: float = 0.0
    image: str | None = None
    outcomes: list[str] = Field(default_factory=list)
    outcome_prices: list[float] = Field(default_factory=list)

    @property
    def max_price(self) -> float | None:
        """Highest outcome price, or None when no prices are known."""
        if not self.outcome_prices:
            return None
        return max(self.outcome_prices)
