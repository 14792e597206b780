"""FastAPI backend: indexes, stars, market proxy and account endpoints."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

import duckdb
import structlog
from duckdb import DuckDBPyConnection
from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp

from polyindex.api.deps import (
    get_app_settings,
    get_conn,
    get_market_source,
    get_request_context,
    set_config_profile,
)
from polyindex.api.schemas import (
    ErrorResponse,
    HealthResponse,
    IndexMarketsResponse,
    IndexView,
    StarResponse,
    SuccessResponse,
    VisibilityUpdate,
)
from polyindex.config import Settings, configure_logging, get_settings
from polyindex.context import RequestContext
from polyindex.errors import PolyindexError
from polyindex.indexes import service
from polyindex.indexes.filters import filter_markets
from polyindex.ingestion.polymarket.gamma import GammaMarketSource, market_categories
from polyindex.models import IndexDraft, IndexFilters, Market
from polyindex.storage.db import get_connection, init_schema

log = structlog.get_logger(__name__)

_ERRORS = {
    400: {"description": "Validation error", "model": ErrorResponse},
    401: {"description": "No session", "model": ErrorResponse},
    403: {"description": "Not the owner", "model": ErrorResponse},
    404: {"description": "Index not found", "model": ErrorResponse},
    503: {"description": "Datastore not configured", "model": ErrorResponse},
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_app_settings()
    if settings.datastore_configured:
        conn = get_connection(settings.db_path)
        try:
            init_schema(conn)
        finally:
            conn.close()
    else:
        log.warning("datastore_unconfigured", detail="serving curated indexes only")
    yield


def _cors(app: ASGIApp) -> CORSMiddleware:
    """CORS from the active config. Starlette builds middleware at startup, after run_api has set it."""
    return CORSMiddleware(
        app,
        allow_origins=get_app_settings().cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


app = FastAPI(title="Polyindex API", version="0.1.0", lifespan=lifespan)
app.add_middleware(_cors)


def _error_json(message: str, status_code: int, details: str | None = None) -> JSONResponse:
    """Return consistent error JSON: { error, details? }."""
    content: dict[str, str] = {"error": message}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(PolyindexError)
async def _handle_polyindex_error(request: Request, exc: PolyindexError) -> JSONResponse:
    return _error_json(exc.message, exc.status_code, exc.details)


@app.exception_handler(RequestValidationError)
async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
    )
    return _error_json("Invalid request", 400, details)


@app.exception_handler(duckdb.Error)
async def _handle_datastore_error(request: Request, exc: duckdb.Error) -> JSONResponse:
    log.error("datastore_error", method=request.method, path=request.url.path, error=str(exc))
    return _error_json("Internal server error", 500)


@app.exception_handler(Exception)
async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    log.error("unhandled_error", method=request.method, path=request.url.path, exc_info=exc)
    return _error_json("Internal server error", 500)


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok")


# --- Indexes ---
@app.get("/indexes", response_model=list[IndexView])
def indexes_list(
    conn: DuckDBPyConnection | None = Depends(get_conn),
    ctx: RequestContext = Depends(get_request_context),
    source: GammaMarketSource = Depends(get_market_source),
) -> list[IndexView]:
    """Public indexes plus the caller's private ones, with star counts. Curated indexes are refreshed first."""
    entries = service.list_indexes(conn, ctx, source.snapshot())
    return [IndexView.from_entry(e) for e in entries]


@app.post("/indexes", response_model=IndexView, status_code=201, responses=_ERRORS)
def indexes_create(
    draft: IndexDraft,
    conn: DuckDBPyConnection | None = Depends(get_conn),
    ctx: RequestContext = Depends(get_request_context),
) -> IndexView:
    index = service.create_index(conn, ctx, draft)
    return IndexView.from_entry(service.IndexEntry(index))


@app.get("/indexes/user", response_model=list[IndexView], responses=_ERRORS)
def indexes_for_caller(
    conn: DuckDBPyConnection | None = Depends(get_conn),
    ctx: RequestContext = Depends(get_request_context),
) -> list[IndexView]:
    return [IndexView.from_entry(e) for e in service.list_user_indexes(conn, ctx)]


@app.get("/indexes/{index_id}", response_model=IndexView, responses=_ERRORS)
def indexes_get(
    index_id: str,
    conn: DuckDBPyConnection | None = Depends(get_conn),
    ctx: RequestContext = Depends(get_request_context),
    source: GammaMarketSource = Depends(get_market_source),
) -> IndexView:
    return IndexView.from_entry(service.get_index(conn, ctx, index_id, source.snapshot))


@app.get("/indexes/{index_id}/markets", response_model=IndexMarketsResponse, responses=_ERRORS)
def indexes_markets(
    index_id: str,
    conn: DuckDBPyConnection | None = Depends(get_conn),
    ctx: RequestContext = Depends(get_request_context),
    source: GammaMarketSource = Depends(get_market_source),
) -> IndexMarketsResponse:
    """Members of an index resolved against the live snapshot (dynamic indexes re-run their filters)."""
    return IndexMarketsResponse.from_entry(service.index_markets(conn, ctx, index_id, source.snapshot))


@app.put("/indexes/{index_id}", response_model=IndexView, responses=_ERRORS)
def indexes_update(
    index_id: str,
    draft: IndexDraft,
    conn: DuckDBPyConnection | None = Depends(get_conn),
    ctx: RequestContext = Depends(get_request_context),
) -> IndexView:
    index = service.update_index(conn, ctx, index_id, draft)
    return IndexView.from_entry(service.IndexEntry(index))


@app.patch("/indexes/{index_id}", response_model=IndexView, responses=_ERRORS)
def indexes_set_visibility(
    index_id: str,
    body: VisibilityUpdate,
    conn: DuckDBPyConnection | None = Depends(get_conn),
    ctx: RequestContext = Depends(get_request_context),
) -> IndexView:
    index = service.set_visibility(conn, ctx, index_id, body.is_public)
    return IndexView.from_entry(service.IndexEntry(index))


@app.delete("/indexes/{index_id}", response_model=SuccessResponse, responses=_ERRORS)
def indexes_delete(
    index_id: str,
    conn: DuckDBPyConnection | None = Depends(get_conn),
    ctx: RequestContext = Depends(get_request_context),
) -> SuccessResponse:
    service.delete_index(conn, ctx, index_id)
    return SuccessResponse()


@app.post("/indexes/{index_id}/star", response_model=StarResponse, responses=_ERRORS)
def indexes_star(
    index_id: str,
    conn: DuckDBPyConnection | None = Depends(get_conn),
    ctx: RequestContext = Depends(get_request_context),
) -> StarResponse:
    return StarResponse.from_result(service.star_index(conn, ctx, index_id))


@app.delete("/indexes/{index_id}/star", response_model=StarResponse, responses=_ERRORS)
def indexes_unstar(
    index_id: str,
    conn: DuckDBPyConnection | None = Depends(get_conn),
    ctx: RequestContext = Depends(get_request_context),
) -> StarResponse:
    return StarResponse.from_result(service.unstar_index(conn, ctx, index_id))


@app.get("/users/{username}/indexes", response_model=list[IndexView], responses=_ERRORS)
def user_public_indexes(
    username: str,
    conn: DuckDBPyConnection | None = Depends(get_conn),
    ctx: RequestContext = Depends(get_request_context),
) -> list[IndexView]:
    """Public indexes authored by username, for the profile page."""
    return [IndexView.from_entry(e) for e in service.list_public_indexes_for_username(conn, ctx, username)]


# --- Markets ---
@app.get("/markets", response_model=list[Market])
def markets_list(
    response: Response,
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=500),
    end_date_before: str | None = Query(None, alias="endDateBefore"),
    end_date_after: str | None = Query(None, alias="endDateAfter"),
    source: GammaMarketSource = Depends(get_market_source),
    settings: Settings = Depends(get_app_settings),
) -> list[Market]:
    """Proxy to the Gamma events listing, normalised to Market records."""
    response.headers["Cache-Control"] = f"public, max-age={settings.markets_cache_max_age_sec}"
    return source.fetch(
        offset=offset,
        limit=limit,
        end_date_before=end_date_before,
        end_date_after=end_date_after,
    )


@app.get("/markets/categories", response_model=list[str])
def markets_categories(source: GammaMarketSource = Depends(get_market_source)) -> list[str]:
    return market_categories(source.snapshot())


@app.post("/markets/preview", response_model=list[Market], responses={400: _ERRORS[400]})
def markets_preview(
    filters: IndexFilters,
    source: GammaMarketSource = Depends(get_market_source),
) -> list[Market]:
    """Markets a dynamic index with these filters would contain right now."""
    return filter_markets(source.snapshot(), filters)


# --- Account ---
@app.delete("/account", response_model=SuccessResponse, responses=_ERRORS)
def account_delete(
    conn: DuckDBPyConnection | None = Depends(get_conn),
    ctx: RequestContext = Depends(get_request_context),
) -> SuccessResponse:
    service.delete_account(conn, ctx)
    return SuccessResponse()


def run_api(
    host: str = "127.0.0.1",
    port: int = 8000,
    profile: str | None = None,
    config_dir: Path | None = None,
) -> None:
    set_config_profile(profile, config_dir)
    configure_logging(get_settings(profile, config_dir))
    import uvicorn

    uvicorn.run("polyindex.api.main:app", host=host, port=port, reload=False)
