"""DuckDB connection and schema init."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

import duckdb

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

# DuckDB has no ON DELETE CASCADE; cascades are done in storage.indexes / storage.users.
SCHEMA_SQL = """
-- Profiles (credentials are held by the session store below)
CREATE TABLE IF NOT EXISTS users (
    id                  VARCHAR PRIMARY KEY,
    email               VARCHAR NOT NULL,
    username            VARCHAR NOT NULL UNIQUE,
    is_paid             BOOLEAN DEFAULT FALSE,
    stripe_customer_id  VARCHAR,
    subscription_id     VARCHAR,
    subscription_status VARCHAR,
    created_at          BIGINT NOT NULL
);

-- Session tokens issued by the auth layer
CREATE TABLE IF NOT EXISTS auth_sessions (
    token           VARCHAR PRIMARY KEY,
    user_id         VARCHAR NOT NULL,
    created_at      BIGINT NOT NULL
);

-- Indexes: markets (static) or filters (dynamic) is set, never both
CREATE TABLE IF NOT EXISTS indexes (
    id                  VARCHAR PRIMARY KEY,
    name                VARCHAR NOT NULL,
    description         VARCHAR,
    created_by          VARCHAR,
    created_by_username VARCHAR,
    is_public           BOOLEAN NOT NULL DEFAULT FALSE,
    category            VARCHAR,
    markets             JSON,
    filters             JSON,
    created_at          BIGINT NOT NULL,
    updated_at          BIGINT
);

-- One star per (user, index)
CREATE TABLE IF NOT EXISTS stars (
    user_id         VARCHAR NOT NULL,
    index_id        VARCHAR NOT NULL,
    created_at      BIGINT NOT NULL,
    PRIMARY KEY (user_id, index_id)
);
"""


def get_connection(db_path: str | Path, read_only: bool = False) -> DuckDBPyConnection:
    """Return a DuckDB connection. Caller must close or use as context manager."""
    path = Path(db_path)
    if not read_only:
        path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def init_schema(conn: DuckDBPyConnection) -> None:
    """Create tables if they do not exist."""
    for stmt in SCHEMA_SQL.split(";"):
        stmt = stmt.strip()
        if stmt:
            try:
                conn.execute(stmt)
            except duckdb.Error as e:
                if "already exists" not in str(e).lower():
                    raise


@contextmanager
def transaction(conn: DuckDBPyConnection) -> Iterator[DuckDBPyConnection]:
    """Run the block in one transaction; roll back and re-raise on error."""
    conn.begin()
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()
