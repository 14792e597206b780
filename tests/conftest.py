"""Shared fixtures: a temporary DuckDB datastore."""

import shutil
import tempfile
from pathlib import Path

import pytest

from polyindex.storage.db import get_connection, init_schema


@pytest.fixture
def temp_db_path():
    tmp = tempfile.mkdtemp()
    path = Path(tmp) / "test.duckdb"
    conn = get_connection(path)
    init_schema(conn)
    conn.close()
    yield path
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def temp_db(temp_db_path):
    conn = get_connection(temp_db_path)
    yield conn
    conn.close()
