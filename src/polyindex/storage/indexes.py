"""Index persistence and the row <-> domain mapping."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, NamedTuple

from polyindex.models import DynamicMembership, Index, IndexFilters, StaticMembership
from polyindex.storage.db import transaction
from polyindex.timestamps import from_ms, now_ms, to_ms

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

INDEX_COLUMNS = [
    "id",
    "name",
    "description",
    "created_by",
    "created_by_username",
    "is_public",
    "category",
    "markets",
    "filters",
    "created_at",
    "updated_at",
]
_SELECT = f"SELECT {', '.join(INDEX_COLUMNS)} FROM indexes"


class IndexOwnership(NamedTuple):
    created_by: str | None
    is_public: bool


def _load_json(value: Any) -> Any:
    if value is None or isinstance(value, (list, dict)):
        return value
    return json.loads(value)


def index_to_row(index: Index) -> dict[str, Any]:
    """Domain Index -> column values. Filters are stored in their camelCase wire form."""
    filters = index.filters
    return {
        "id": index.id,
        "name": index.name,
        "description": index.description,
        "created_by": index.created_by,
        "created_by_username": index.created_by_username,
        "is_public": index.is_public,
        "category": index.category,
        "markets": None if index.is_dynamic else json.dumps(index.market_ids),
        "filters": (
            json.dumps(filters.model_dump(by_alias=True, exclude_none=True)) if filters is not None else None
        ),
        "created_at": to_ms(index.created_at),
        "updated_at": to_ms(index.updated_at),
    }


def row_to_index(row: dict[str, Any]) -> Index:
    """Column values -> domain Index. A non-null filters column makes the index dynamic."""
    filters = _load_json(row.get("filters"))
    if filters is not None:
        membership: StaticMembership | DynamicMembership = DynamicMembership(
            filters=IndexFilters.model_validate(filters)
        )
    else:
        membership = StaticMembership(market_ids=[str(m) for m in _load_json(row.get("markets")) or []])
    return Index(
        id=row["id"],
        name=row["name"],
        description=row.get("description"),
        created_by=row.get("created_by"),
        created_by_username=row.get("created_by_username"),
        is_public=bool(row.get("is_public")),
        category=row.get("category"),
        membership=membership,
        created_at=from_ms(row["created_at"]),
        updated_at=from_ms(row.get("updated_at")),
    )


def _fetch_indexes(conn: DuckDBPyConnection, sql: str, params: list[Any]) -> list[Index]:
    rows = conn.execute(sql, params).fetchall()
    return [row_to_index(dict(zip(INDEX_COLUMNS, r))) for r in rows]


def insert_index(conn: DuckDBPyConnection, index: Index) -> None:
    row = index_to_row(index)
    placeholders = ", ".join("?" for _ in INDEX_COLUMNS)
    conn.execute(
        f"INSERT INTO indexes ({', '.join(INDEX_COLUMNS)}) VALUES ({placeholders})",
        [row[c] for c in INDEX_COLUMNS],
    )


def upsert_curated_index(conn: DuckDBPyConnection, index: Index) -> None:
    """Insert or refresh a curated index by its deterministic id. created_at is kept on refresh."""
    row = index_to_row(index)
    placeholders = ", ".join("?" for _ in INDEX_COLUMNS)
    conn.execute(
        f"""
        INSERT INTO indexes ({', '.join(INDEX_COLUMNS)}) VALUES ({placeholders})
        ON CONFLICT (id) DO UPDATE SET
            name = excluded.name,
            description = excluded.description,
            created_by = excluded.created_by,
            created_by_username = excluded.created_by_username,
            is_public = excluded.is_public,
            category = excluded.category,
            markets = excluded.markets,
            filters = excluded.filters,
            updated_at = excluded.updated_at
        """,
        [row[c] for c in INDEX_COLUMNS],
    )


def get_index(conn: DuckDBPyConnection, index_id: str) -> Index | None:
    found = _fetch_indexes(conn, f"{_SELECT} WHERE id = ?", [index_id])
    return found[0] if found else None


def get_index_ownership(conn: DuckDBPyConnection, index_id: str) -> IndexOwnership | None:
    """Owner and visibility only, re-read before every mutation."""
    row = conn.execute("SELECT created_by, is_public FROM indexes WHERE id = ?", [index_id]).fetchone()
    if row is None:
        return None
    return IndexOwnership(created_by=row[0], is_public=bool(row[1]))


def list_visible_indexes(conn: DuckDBPyConnection, caller_id: str | None = None) -> list[Index]:
    """Public indexes plus the caller's private ones, newest first."""
    if caller_id:
        return _fetch_indexes(
            conn,
            f"{_SELECT} WHERE is_public = true OR created_by = ? ORDER BY created_at DESC",
            [caller_id],
        )
    return _fetch_indexes(conn, f"{_SELECT} WHERE is_public = true ORDER BY created_at DESC", [])


def list_indexes_by_creator(conn: DuckDBPyConnection, user_id: str) -> list[Index]:
    return _fetch_indexes(conn, f"{_SELECT} WHERE created_by = ? ORDER BY created_at DESC", [user_id])


def list_public_indexes_by_creator(conn: DuckDBPyConnection, user_id: str) -> list[Index]:
    return _fetch_indexes(
        conn,
        f"{_SELECT} WHERE is_public = true AND created_by = ? ORDER BY created_at DESC",
        [user_id],
    )


def replace_index(conn: DuckDBPyConnection, index: Index) -> None:
    """Overwrite the editable fields of an existing index."""
    row = index_to_row(index)
    conn.execute(
        """
        UPDATE indexes SET
            name = ?, description = ?, category = ?, markets = ?, filters = ?, is_public = ?, updated_at = ?
        WHERE id = ?
        """,
        [
            row["name"],
            row["description"],
            row["category"],
            row["markets"],
            row["filters"],
            row["is_public"],
            row["updated_at"] or now_ms(),
            row["id"],
        ],
    )


def set_index_visibility(conn: DuckDBPyConnection, index_id: str, is_public: bool) -> None:
    conn.execute(
        "UPDATE indexes SET is_public = ?, updated_at = ? WHERE id = ?",
        [is_public, now_ms(), index_id],
    )


def delete_index(conn: DuckDBPyConnection, index_id: str) -> None:
    """Delete an index and its stars together."""
    with transaction(conn):
        conn.execute("DELETE FROM stars WHERE index_id = ?", [index_id])
        conn.execute("DELETE FROM indexes WHERE id = ?", [index_id])
