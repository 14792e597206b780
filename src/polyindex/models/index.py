"""Index, IndexFilters and the static/dynamic membership variant."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from polyindex.timestamps import parse_timestamp

SYSTEM_USERNAME = "system"


class IndexFilters(BaseModel):
    """Rule set for a dynamic index. Every field is optional; None means no constraint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    categories: list[str] | None = None
    min_volume: float | None = None
    max_volume: float | None = None
    min_liquidity: float | None = None
    max_end_date: str | None = None
    min_end_date: str | None = None
    keywords: list[str] | None = None

    @field_validator("max_end_date", "min_end_date")
    @classmethod
    def _check_date(cls, v: str | None) -> str | None:
        if v and parse_timestamp(v) is None:
            raise ValueError(f"not an ISO-8601 date: {v!r}")
        return v

    def is_empty(self) -> bool:
        return not any(
            [
                self.categories,
                self.min_volume is not None,
                self.max_volume is not None,
                self.min_liquidity is not None,
                self.max_end_date,
                self.min_end_date,
                self.keywords,
            ]
        )


class StaticMembership(BaseModel):
    """Fixed list of market ids chosen by the author."""

    kind: Literal["static"] = "static"
    market_ids: list[str] = Field(default_factory=list)


class DynamicMembership(BaseModel):
    """Members are recomputed from the live snapshot on every read."""

    kind: Literal["dynamic"] = "dynamic"
    filters: IndexFilters


Membership = Annotated[Union[StaticMembership, DynamicMembership], Field(discriminator="kind")]


class Index(BaseModel):
    """Canonical index. created_by None marks a platform-curated (system) index."""

    id: str
    name: str
    description: str | None = None
    created_by: str | None = None
    created_by_username: str | None = None
    is_public: bool = False
    category: str | None = None
    membership: Membership
    created_at: datetime
    updated_at: datetime | None = None

    @property
    def is_dynamic(self) -> bool:
        return isinstance(self.membership, DynamicMembership)

    @property
    def is_system(self) -> bool:
        return self.created_by is None

    @property
    def market_ids(self) -> list[str]:
        if isinstance(self.membership, StaticMembership):
            return self.membership.market_ids
        return []

    @property
    def filters(self) -> IndexFilters | None:
        if isinstance(self.membership, DynamicMembership):
            return self.membership.filters
        return None


class IndexDraft(BaseModel):
    """Client-supplied fields for create and full update (camelCase on the wire).

    name is optional here so a missing name is reported as "Name is required"
    rather than as a schema error.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str | None = None
    description: str | None = None
    category: str | None = None
    markets: list[str] | None = None
    filters: IndexFilters | None = None
    is_public: bool | None = None
