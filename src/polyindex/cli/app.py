"""Root CLI app - entry point and command registration."""

from pathlib import Path

import typer

from polyindex.config import configure_logging, get_settings

app = typer.Typer(
    name="polyindex",
    help="Polyindex - curated and rule-based indexes over Polymarket prediction markets.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    config_dir: Path | None = typer.Option(
        None, "--config-dir", "-C", help="Config directory (default: ./config or package config)"
    ),
    profile: str | None = typer.Option(
        None, "--profile", "-p", help="Config profile (e.g. dev) to overlay on default.toml"
    ),
) -> None:
    """Configure logging and store options in context."""
    settings = get_settings(profile, config_dir)
    configure_logging(settings)
    ctx.obj = {"settings": settings, "config_dir": config_dir, "profile": profile}


# Subcommands registered from other modules
from polyindex.cli import api_cmd, indexes, markets, users  # noqa: E402

app.add_typer(api_cmd.app, name="api")
app.add_typer(markets.app, name="markets")
app.add_typer(indexes.app, name="indexes")
app.add_typer(users.app, name="users")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
