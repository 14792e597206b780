"""User profiles and session credentials."""

from __future__ import annotations

import secrets
import uuid
from typing import TYPE_CHECKING, Any

from polyindex.models import User
from polyindex.storage.db import transaction
from polyindex.timestamps import from_ms, now_ms

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

USER_COLUMNS = [
    "id",
    "email",
    "username",
    "is_paid",
    "stripe_customer_id",
    "subscription_id",
    "subscription_status",
    "created_at",
]
_SELECT = f"SELECT {', '.join(USER_COLUMNS)} FROM users"


def row_to_user(row: dict[str, Any]) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        username=row["username"],
        is_paid=bool(row.get("is_paid")),
        stripe_customer_id=row.get("stripe_customer_id"),
        subscription_id=row.get("subscription_id"),
        subscription_status=row.get("subscription_status"),
        created_at=from_ms(row["created_at"]),
    )


def create_user(conn: DuckDBPyConnection, email: str, username: str, user_id: str | None = None) -> User:
    user_id = user_id or str(uuid.uuid4())
    created_at = now_ms()
    conn.execute(
        "INSERT INTO users (id, email, username, created_at) VALUES (?, ?, ?, ?)",
        [user_id, email, username, created_at],
    )
    return User(id=user_id, email=email, username=username, created_at=from_ms(created_at))


def get_user(conn: DuckDBPyConnection, user_id: str) -> User | None:
    row = conn.execute(f"{_SELECT} WHERE id = ?", [user_id]).fetchone()
    return row_to_user(dict(zip(USER_COLUMNS, row))) if row else None


def get_user_by_username(conn: DuckDBPyConnection, username: str) -> User | None:
    row = conn.execute(f"{_SELECT} WHERE username = ?", [username]).fetchone()
    return row_to_user(dict(zip(USER_COLUMNS, row))) if row else None


def create_session(conn: DuckDBPyConnection, user_id: str) -> str:
    """Issue a new opaque session token for user_id."""
    token = secrets.token_urlsafe(32)
    conn.execute(
        "INSERT INTO auth_sessions (token, user_id, created_at) VALUES (?, ?, ?)",
        [token, user_id, now_ms()],
    )
    return token


def resolve_session(conn: DuckDBPyConnection, token: str) -> tuple[bool, User | None]:
    """(session exists, profile). A session can outlive its profile row."""
    row = conn.execute("SELECT user_id FROM auth_sessions WHERE token = ?", [token]).fetchone()
    if row is None:
        return False, None
    return True, get_user(conn, row[0])


def delete_user(conn: DuckDBPyConnection, user_id: str) -> None:
    """Delete a profile with everything it owns: its stars, its indexes and their stars."""
    with transaction(conn):
        conn.execute(
            "DELETE FROM stars WHERE user_id = ? OR index_id IN (SELECT id FROM indexes WHERE created_by = ?)",
            [user_id, user_id],
        )
        conn.execute("DELETE FROM indexes WHERE created_by = ?", [user_id])
        conn.execute("DELETE FROM users WHERE id = ?", [user_id])


def delete_credentials(conn: DuckDBPyConnection, user_id: str) -> None:
    conn.execute("DELETE FROM auth_sessions WHERE user_id = ?", [user_id])
