"""Star persistence. Counts are always re-derived from the table, never cached."""

from __future__ import annotations

from typing import TYPE_CHECKING

from polyindex.timestamps import now_ms

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection


def has_star(conn: DuckDBPyConnection, user_id: str, index_id: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM stars WHERE user_id = ? AND index_id = ?",
        [user_id, index_id],
    ).fetchone()
    return row is not None


def add_star(conn: DuckDBPyConnection, user_id: str, index_id: str) -> None:
    """Insert a star; the (user_id, index_id) key makes a concurrent duplicate a no-op."""
    conn.execute(
        "INSERT INTO stars (user_id, index_id, created_at) VALUES (?, ?, ?) ON CONFLICT DO NOTHING",
        [user_id, index_id, now_ms()],
    )


def remove_star(conn: DuckDBPyConnection, user_id: str, index_id: str) -> None:
    conn.execute("DELETE FROM stars WHERE user_id = ? AND index_id = ?", [user_id, index_id])


def count_stars(conn: DuckDBPyConnection, index_id: str) -> int:
    row = conn.execute("SELECT COUNT(*) FROM stars WHERE index_id = ?", [index_id]).fetchone()
    return int(row[0]) if row else 0


def star_summary(
    conn: DuckDBPyConnection,
    index_ids: list[str],
    user_id: str | None = None,
) -> tuple[dict[str, int], set[str]]:
    """Star count per index and the subset starred by user_id, for a batch of indexes."""
    if not index_ids:
        return {}, set()
    placeholders = ",".join("?" for _ in index_ids)
    rows = conn.execute(
        f"""
        SELECT index_id, COUNT(*) AS cnt, COUNT(*) FILTER (WHERE user_id = ?) AS mine
        FROM stars
        WHERE index_id IN ({placeholders})
        GROUP BY index_id
        """,
        [user_id] + index_ids,
    ).fetchall()
    counts = {r[0]: int(r[1]) for r in rows}
    starred = {r[0] for r in rows if user_id and r[2]}
    return counts, starred
