"""FastAPI dependencies: settings, per-request datastore connection, market source, caller."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

from duckdb import DuckDBPyConnection
from fastapi import Depends, Request

from polyindex.config import Settings, get_settings
from polyindex.context import ANONYMOUS, RequestContext
from polyindex.ingestion.polymarket.gamma import GammaMarketSource
from polyindex.storage.db import get_connection
from polyindex.storage.users import resolve_session

# Set by run_api() so request handlers load the same config as the CLI that started them.
_config_profile: str | None = None
_config_dir: Path | None = None


def set_config_profile(profile: str | None, config_dir: Path | None = None) -> None:
    global _config_profile, _config_dir
    _config_profile = profile
    _config_dir = config_dir


def get_app_settings() -> Settings:
    return get_settings(_config_profile, _config_dir)


def get_conn(settings: Settings = Depends(get_app_settings)) -> Iterator[DuckDBPyConnection | None]:
    """One connection per request; None when the datastore is not configured."""
    if not settings.datastore_configured:
        yield None
        return
    conn = get_connection(settings.db_path)
    try:
        yield conn
    finally:
        conn.close()


def get_market_source(settings: Settings = Depends(get_app_settings)) -> GammaMarketSource:
    return GammaMarketSource(
        base_url=settings.gamma_api_base,
        timeout=settings.request_timeout_sec,
        snapshot_limit=settings.snapshot_limit,
    )


def _session_token(request: Request, cookie_name: str) -> str | None:
    auth = request.headers.get("authorization") or ""
    scheme, _, token = auth.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.cookies.get(cookie_name) or None


def get_request_context(
    request: Request,
    conn: DuckDBPyConnection | None = Depends(get_conn),
    settings: Settings = Depends(get_app_settings),
) -> RequestContext:
    """Resolve the caller from a bearer token or the session cookie."""
    token = _session_token(request, settings.session_cookie)
    if not token or conn is None:
        return ANONYMOUS
    found, user = resolve_session(conn, token)
    return RequestContext(caller=user, session_found=found)
