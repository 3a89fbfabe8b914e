"""Bot subcommand: start."""

from __future__ import annotations

import asyncio
import signal
import sys

import structlog
import typer

from polyfront.chain.balances import RpcBalanceSource
from polyfront.cli.wallet import log_startup_balances
from polyfront.config.settings import Settings, validate_settings
from polyfront.engine.dispatcher import Dispatcher
from polyfront.engine.pipeline import ExecutionPipeline
from polyfront.errors import ConfigError
from polyfront.exchange.polymarket import PolymarketExchange
from polyfront.listener.activity import ActivityPoller
from polyfront.listener.base import SignalSource
from polyfront.models import TradeSignal

app = typer.Typer(help="Run the frontrun bot")

log = structlog.get_logger(__name__)


async def run_bot(settings: Settings, stop_event: asyncio.Event) -> None:
    """Wire listener -> dispatcher -> pipeline and run until stop_event is set."""
    exchange = await asyncio.to_thread(PolymarketExchange.from_settings, settings)
    balance_source = RpcBalanceSource.from_settings(settings)
    await log_startup_balances(balance_source, settings)

    pipeline = ExecutionPipeline.from_settings(settings, exchange, balance_source)
    queue: asyncio.Queue[TradeSignal] = asyncio.Queue()
    dispatcher = Dispatcher(
        pipeline,
        queue,
        min_trade_size_usd=settings.min_trade_size_usd,
        execution_enabled=settings.trade_execution_enabled,
    )
    poller: SignalSource = ActivityPoller(
        settings.target_addresses,
        base_url=settings.data_api_base,
        fetch_interval_sec=settings.fetch_interval_sec,
        limit=settings.activity_limit,
        backoff_max_sec=settings.listener_backoff_max_sec,
        timeout=settings.request_timeout_sec,
        seen_window_sec=settings.seen_window_sec,
    )
    try:
        await asyncio.gather(poller.run(queue, stop_event), dispatcher.run(stop_event))
    finally:
        await balance_source.aclose()


@app.command("start")
def start(ctx: typer.Context) -> None:
    """Start watching target addresses and frontrunning their trades (Ctrl+C to stop)."""
    settings = ctx.obj["settings"]
    try:
        validate_settings(settings, require_wallet=True)
    except ConfigError as e:
        typer.echo(f"Invalid configuration: {e}")
        raise typer.Exit(1)

    log.info("bot_starting", **settings.summary())
    if not settings.trade_execution_enabled:
        log.warning("trade_execution_disabled", msg="Monitoring only: trades are detected but not executed.")

    stop_event = asyncio.Event()

    def shutdown() -> None:
        log.info("shutdown_requested")
        stop_event.set()

    loop = asyncio.new_event_loop()
    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGINT, shutdown)
        loop.add_signal_handler(signal.SIGTERM, shutdown)
    try:
        typer.echo("Bot is running (Ctrl+C to stop)...")
        loop.run_until_complete(run_bot(settings, stop_event))
    except KeyboardInterrupt:
        pass
    finally:
        loop.close()
    typer.echo("Stopped.")
