"""Root CLI app - entry point and command registration."""

from pathlib import Path

import typer
from dotenv import load_dotenv

from polyfront.config import get_settings
from polyfront.config.settings import configure_logging

app = typer.Typer(
    name="polyfront",
    help="Polyfront - watch target wallets on Polymarket and frontrun their trades.",
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
    env_file: Path | None = typer.Option(None, "--env-file", help="Dotenv file to load (default: ./.env)"),
) -> None:
    """Load .env, configure logging and store settings in context."""
    load_dotenv(dotenv_path=env_file, override=False)
    settings = get_settings(profile, config_dir)
    configure_logging(settings)
    ctx.obj = {"settings": settings, "config_dir": config_dir, "profile": profile}


# Subcommands registered from other modules
from polyfront.cli import bot, config_cmd, wallet  # noqa: E402

app.add_typer(bot.app, name="bot")
app.add_typer(wallet.app, name="wallet")
app.add_typer(config_cmd.app, name="config")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
