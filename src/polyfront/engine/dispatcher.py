"""Dispatcher - drains the signal channel and launches one pipeline task per signal."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import structlog

from polyfront.engine.pipeline import ExecutionPipeline
from polyfront.models import ExecutionResult, TradeSignal

log = structlog.get_logger(__name__)


class Dispatcher:
    """Launches pipelines without a pool or backpressure; a burst of N signals runs N pipelines.

    Stopping does not wait for in-flight pipelines. They are abandoned with the
    event loop and reported in the shutdown log.
    """

    def __init__(
        self,
        pipeline: ExecutionPipeline,
        queue: asyncio.Queue[TradeSignal],
        *,
        min_trade_size_usd: float = 0.0,
        execution_enabled: bool = True,
        poll_timeout_sec: float = 0.5,
    ) -> None:
        self.pipeline = pipeline
        self.queue = queue
        self.min_trade_size_usd = min_trade_size_usd
        self.execution_enabled = execution_enabled
        self.poll_timeout_sec = poll_timeout_sec
        self._tasks: set[asyncio.Task[ExecutionResult]] = set()
        self._signal_count = 0
        self._launched = 0
        self._filtered = 0
        self._start_ts: float | None = None

    def _on_done(self, task: asyncio.Task[ExecutionResult]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("frontrun_unhandled_error", error=str(exc), error_type=type(exc).__name__)

    def submit(self, signal: TradeSignal) -> asyncio.Task[ExecutionResult] | None:
        """Launch a pipeline for `signal` unless it is filtered. Does not wait for it."""
        self._signal_count += 1
        if signal.size_usd < self.min_trade_size_usd:
            self._filtered += 1
            log.debug("signal_below_min_size", size_usd=signal.size_usd, min_usd=self.min_trade_size_usd)
            return None
        if not self.execution_enabled:
            log.info(
                "signal_monitor_only",
                side=signal.side,
                size_usd=round(signal.size_usd, 2),
                market_id=signal.market_id,
                trader=signal.trader,
            )
            return None
        task = asyncio.create_task(self.pipeline.execute(signal), name=f"frontrun-{signal.execution_key}")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        self._launched += 1
        return task

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Consume signals until stop_event is set."""
        stop = stop_event or asyncio.Event()
        self._start_ts = time.time()
        log.info("dispatcher_started", execution_enabled=self.execution_enabled)
        while not stop.is_set():
            try:
                signal = await asyncio.wait_for(self.queue.get(), timeout=self.poll_timeout_sec)
            except TimeoutError:
                continue
            log.info(
                "signal_received",
                market_id=signal.market_id,
                side=signal.side,
                size_usd=round(signal.size_usd, 2),
                trader=signal.trader,
            )
            self.submit(signal)
        if self._tasks:
            log.warning("dispatcher_stopped_with_inflight", in_flight=len(self._tasks))
        log.info("dispatcher_stopped", **self.get_status())

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def get_status(self) -> dict[str, Any]:
        """Return current status: signals seen, launched, filtered, in flight, elapsed_sec."""
        elapsed = (time.time() - self._start_ts) if self._start_ts else 0
        return {
            "signals": self._signal_count,
            "launched": self._launched,
            "filtered": self._filtered,
            "in_flight": self.in_flight,
            "elapsed_sec": round(elapsed, 1),
        }
