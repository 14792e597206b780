"""Markets subcommand: list live markets and their categories."""

from __future__ import annotations

import typer

from polyindex.ingestion.polymarket.gamma import GammaMarketSource, market_categories

app = typer.Typer(help="Browse live Polymarket markets")


def _source(ctx: typer.Context) -> GammaMarketSource:
    settings = ctx.obj["settings"]
    return GammaMarketSource(
        base_url=settings.gamma_api_base,
        timeout=settings.request_timeout_sec,
        snapshot_limit=settings.snapshot_limit,
    )


@app.command("list")
def list_markets(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", help="Max markets to fetch"),
    offset: int = typer.Option(0, "--offset", help="Pagination offset"),
    category: str | None = typer.Option(None, "--category", "-c", help="Only show this category"),
) -> None:
    """Fetch markets from the Gamma API and print them."""
    markets = _source(ctx).fetch(offset=offset, limit=limit)
    if category:
        markets = [m for m in markets if m.category == category]
    for m in markets:
        prices = "/".join(f"{p:.2f}" for p in m.outcome_prices)
        typer.echo(f"  {m.id:>10}  {m.category:<11} {m.volume:>14,.0f}  {prices:<11} {m.question[:60]}")
    typer.echo(f"Total: {len(markets)} markets")


@app.command("categories")
def categories(ctx: typer.Context) -> None:
    """Categories present in the current market snapshot."""
    for name in market_categories(_source(ctx).snapshot()):
        typer.echo(name)
