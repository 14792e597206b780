"""Users subcommand: local account and session management."""

from __future__ import annotations

import typer

from polyindex.storage.db import get_connection, init_schema
from polyindex.storage.users import create_session, create_user, get_user_by_username

app = typer.Typer(help="Local user accounts and session tokens")


@app.command("create")
def create(
    ctx: typer.Context,
    username: str = typer.Argument(..., help="Public username"),
    email: str = typer.Option(..., "--email", "-e", help="Account email"),
) -> None:
    """Create a user and print a session token usable as a Bearer token."""
    settings = ctx.obj["settings"]
    if not settings.datastore_configured:
        typer.echo("Datastore not configured (storage.db_path is empty).", err=True)
        raise typer.Exit(code=1)
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        if get_user_by_username(conn, username) is not None:
            typer.echo(f"Username already taken: {username}", err=True)
            raise typer.Exit(code=1)
        user = create_user(conn, email=email, username=username)
        token = create_session(conn, user.id)
        typer.echo(f"Created user {user.username} ({user.id})")
        typer.echo(f"Session token: {token}")
    finally:
        conn.close()
