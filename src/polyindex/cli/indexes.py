"""Indexes subcommand: refresh curated indexes, list stored ones."""

from __future__ import annotations

import typer

from polyindex.context import ANONYMOUS
from polyindex.indexes.service import list_indexes, sync_curated_indexes
from polyindex.ingestion.polymarket.gamma import GammaMarketSource
from polyindex.storage.db import get_connection, init_schema

app = typer.Typer(help="Curated and user indexes")


def _require_db(settings) -> str:
    if not settings.datastore_configured:
        typer.echo("Datastore not configured (storage.db_path is empty).", err=True)
        raise typer.Exit(code=1)
    return settings.db_path


@app.command("curate")
def curate(ctx: typer.Context) -> None:
    """Generate curated indexes from the live snapshot and upsert them."""
    settings = ctx.obj["settings"]
    db_path = _require_db(settings)
    source = GammaMarketSource(
        base_url=settings.gamma_api_base,
        timeout=settings.request_timeout_sec,
        snapshot_limit=settings.snapshot_limit,
    )
    markets = source.snapshot()
    conn = get_connection(db_path)
    init_schema(conn)
    try:
        stored = sync_curated_indexes(conn, markets)
        for index in stored:
            typer.echo(f"  {index.id}  {index.name:<18} {len(index.market_ids)} markets")
        typer.echo(f"Upserted {len(stored)} curated indexes from {len(markets)} markets.")
    finally:
        conn.close()


@app.command("list")
def list_public(ctx: typer.Context) -> None:
    """List public indexes in the datastore (curated ones are not refreshed)."""
    settings = ctx.obj["settings"]
    conn = get_connection(_require_db(settings))
    init_schema(conn)
    try:
        for entry in list_indexes(conn, ANONYMOUS, []):
            index = entry.index
            kind = "dynamic" if index.is_dynamic else f"{len(index.market_ids)} markets"
            owner = index.created_by_username or "-"
            typer.echo(f"  {index.id}  {index.name[:30]:<30} {owner:<16} {kind:<12} stars={entry.star_count}")
    finally:
        conn.close()
