"""Config subcommand: show, check."""

from __future__ import annotations

import typer

from polyfront.config.settings import validate_settings
from polyfront.errors import ConfigError

app = typer.Typer(help="Inspect and validate configuration")


@app.command("show")
def show(ctx: typer.Context) -> None:
    """Print the effective configuration (secrets masked)."""
    settings = ctx.obj["settings"]
    for key, value in settings.summary().items():
        typer.echo(f"  {key}: {value}")


@app.command("check")
def check(
    ctx: typer.Context,
    require_wallet: bool = typer.Option(
        True, "--require-wallet/--no-require-wallet", help="Also validate wallet, RPC and target addresses"
    ),
) -> None:
    """Validate configuration the way `bot start` does."""
    settings = ctx.obj["settings"]
    try:
        validate_settings(settings, require_wallet=require_wallet)
    except ConfigError as e:
        typer.echo(f"Invalid configuration: {e}")
        raise typer.Exit(1)
    typer.echo("Configuration OK.")
