"""Wallet subcommand: balances."""

from __future__ import annotations

import asyncio

import structlog
import typer

from polyfront.chain.balances import RpcBalanceSource
from polyfront.config.settings import Settings, validate_settings
from polyfront.errors import BalanceSourceError, ConfigError

app = typer.Typer(help="Wallet diagnostics")

log = structlog.get_logger(__name__)


async def log_startup_balances(source: RpcBalanceSource, settings: Settings) -> tuple[float, float] | None:
    """Log POL/USDC balances and warn when POL is below the gas minimum. None on RPC failure."""
    try:
        gas_balance, quote_balance = await asyncio.gather(source.get_gas_balance(), source.get_quote_balance())
    except BalanceSourceError as e:
        log.error("balance_fetch_failed", error=str(e))
        return None
    log.info(
        "wallet_balances",
        signer=source.gas_address,
        funder=source.quote_address,
        pol=round(gas_balance, 4),
        usdc=round(quote_balance, 2),
    )
    if gas_balance < settings.min_gas_balance:
        log.warning("low_pol_balance", minimum=settings.min_gas_balance, available=round(gas_balance, 4))
    return gas_balance, quote_balance


@app.command("balances")
def balances(ctx: typer.Context) -> None:
    """Show POL (gas) and USDC balances of the configured wallet."""
    settings = ctx.obj["settings"]
    try:
        validate_settings(settings, require_wallet=True)
    except ConfigError as e:
        typer.echo(f"Invalid configuration: {e}")
        raise typer.Exit(1)

    async def _run() -> tuple[float, float] | None:
        source = RpcBalanceSource.from_settings(settings)
        try:
            return await log_startup_balances(source, settings)
        finally:
            await source.aclose()

    result = asyncio.run(_run())
    if result is None:
        typer.echo("Failed to fetch balances.")
        raise typer.Exit(1)
    gas_balance, quote_balance = result
    typer.echo(f"POL Balance: {gas_balance:.4f} POL")
    typer.echo(f"USDC Balance: {quote_balance:.2f} USDC")
