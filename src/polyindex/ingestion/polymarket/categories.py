"""Map Polymarket tag labels to one of the fixed Polyindex categories."""

from __future__ import annotations

from typing import Iterable, NamedTuple

OTHER = "Other"


class CategoryRule(NamedTuple):
    category: str
    exact: tuple[str, ...]  # label equals one of these
    contains: tuple[str, ...]  # label contains one of these

    def matches(self, label: str) -> bool:
        return label in self.exact or any(fragment in label for fragment in self.contains)


# Checked top to bottom; the first rule any label matches wins.
CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        "Crypto",
        exact=("crypto", "btc", "eth"),
        contains=("bitcoin", "ethereum", "crypto price", "defi"),
    ),
    CategoryRule(
        "Finance",
        exact=("finance",),
        contains=("stock", "earnings", "ipo", "commodities", "gold"),
    ),
    CategoryRule(
        "Politics",
        exact=("politics",),
        contains=("election", "white house", "senate", "congress", "president", "immigration"),
    ),
    CategoryRule(
        "Geopolitics",
        exact=("geopolitics",),
        contains=("foreign policy", "gaza", "israel", "iran", "ukraine", "russia", "china"),
    ),
    CategoryRule(
        "Sports",
        exact=("sports",),
        contains=("nfl", "nba", "soccer", "football", "baseball", "basketball", "tennis", "golf"),
    ),
    CategoryRule(
        "Tech",
        exact=("tech", "ai"),
        contains=(
            "big tech", "apple", "google", "microsoft", "meta", "tesla", "openai", "deepseek", "gpt",
        ),
    ),
    CategoryRule(
        "Economy",
        exact=("economy",),
        contains=("fed", "recession", "inflation", "gdp", "business", "economic policy"),
    ),
    CategoryRule(
        "Culture",
        exact=("culture",),
        contains=(
            "pop culture", "celebrities", "music", "movie", "entertainment", "awards", "creators",
        ),
    ),
    CategoryRule(
        "Science",
        exact=(),
        contains=("science", "space", "health", "medicine", "climate", "bird flu"),
    ),
)

CATEGORIES: tuple[str, ...] = tuple(rule.category for rule in CATEGORY_RULES) + (OTHER,)


def classify_tags(labels: Iterable[str | None]) -> str:
    """Return the category of the first rule matched by any label, else Other."""
    lowered = [label.lower() for label in labels if isinstance(label, str) and label]
    for rule in CATEGORY_RULES:
        if any(rule.matches(label) for label in lowered):
            return rule.category
    return OTHER
