"""Pydantic schemas for API request/response consistency and OpenAPI docs.

The wire format is camelCase; domain models stay snake_case and are converted here only.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from polyindex.indexes.membership import total_volume
from polyindex.indexes.service import IndexEntry, StarResult
from polyindex.models import IndexFilters, Market


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "ok"


# --- Error (consistent shape for 4xx/5xx) ---
class ErrorResponse(BaseModel):
    error: str = Field(..., description="Human-readable message")
    details: str | None = Field(None, description="Extra context, e.g. which auth check failed")


class SuccessResponse(BaseModel):
    success: bool = True


# --- Indexes ---
class IndexView(_CamelModel):
    id: str
    name: str
    description: str | None = None
    created_by: str | None = None
    created_by_username: str | None = None
    is_public: bool
    category: str | None = None
    markets: list[str] = Field(default_factory=list)
    filters: IndexFilters | None = None
    created_at: datetime
    updated_at: datetime | None = None
    market_count: int | None = Field(None, description="Unset for dynamic indexes unless members were resolved")
    total_volume: float | None = None
    star_count: int = 0
    is_starred: bool = False

    @classmethod
    def from_entry(cls, entry: IndexEntry) -> IndexView:
        index = entry.index
        if entry.members is not None:
            market_count: int | None = len(entry.members)
            volume: float | None = total_volume(entry.members)
        else:
            market_count = None if index.is_dynamic else len(index.market_ids)
            volume = None
        return cls(
            id=index.id,
            name=index.name,
            description=index.description,
            created_by=index.created_by,
            created_by_username=index.created_by_username,
            is_public=index.is_public,
            category=index.category,
            markets=index.market_ids,
            filters=index.filters,
            created_at=index.created_at,
            updated_at=index.updated_at,
            market_count=market_count,
            total_volume=volume,
            star_count=entry.star_count,
            is_starred=entry.is_starred,
        )


class IndexMarketsResponse(_CamelModel):
    index: IndexView
    markets: list[Market]
    market_count: int
    total_volume: float

    @classmethod
    def from_entry(cls, entry: IndexEntry) -> IndexMarketsResponse:
        members = entry.members or []
        return cls(
            index=IndexView.from_entry(entry),
            markets=members,
            market_count=len(members),
            total_volume=total_volume(members),
        )


class VisibilityUpdate(_CamelModel):
    is_public: bool


# --- Stars ---
class StarResponse(_CamelModel):
    starred: bool
    star_count: int
    already_starred: bool = False

    @classmethod
    def from_result(cls, result: StarResult) -> StarResponse:
        return cls(starred=result.starred, star_count=result.star_count, already_starred=result.already_starred)
