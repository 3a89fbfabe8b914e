"""Polymarket data-api poller - emits new trades of the target wallets as TradeSignals."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx
import structlog

from polyfront.listener.normalize import activity_key, parse_activity
from polyfront.models import TradeSignal

log = structlog.get_logger(__name__)

DATA_API_URL = "https://data-api.polymarket.com"


class ActivityPoller:
    """Polls /activity for each target address and queues unseen trades.

    Only trades at or after the poller's start time are emitted. Seen keys are
    kept for `seen_window_sec` behind the newest trade; older rows are dropped
    unseen. HTTP errors back off exponentially up to `backoff_max_sec`.
    """

    def __init__(
        self,
        target_addresses: list[str],
        *,
        base_url: str = DATA_API_URL,
        fetch_interval_sec: float = 1.0,
        limit: int = 50,
        backoff_max_sec: float = 30.0,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        start_ts_ms: int | None = None,
        seen_window_sec: float = 3600.0,
    ) -> None:
        self.target_addresses = target_addresses
        self.base_url = base_url.rstrip("/")
        self.fetch_interval_sec = fetch_interval_sec
        self.limit = limit
        self.backoff_max_sec = backoff_max_sec
        self.timeout = timeout
        self._client = client
        self.start_ts_ms = start_ts_ms
        self.seen_window_sec = seen_window_sec
        self._seen: dict[str, int] = {}  # activity key -> trade timestamp (ms)
        self._newest_ts_ms = 0
        self._emitted = 0

    async def fetch_activity(self, client: httpx.AsyncClient, address: str) -> list[dict[str, Any]]:
        params = {"user": address, "type": "TRADE", "limit": self.limit}
        resp = await client.get(f"{self.base_url}/activity", params=params)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, list):
            data = data.get("data", []) if isinstance(data, dict) else []
        return [row for row in data if isinstance(row, dict)]

    def new_signals(self, rows: list[dict[str, Any]]) -> list[TradeSignal]:
        """Signals for rows not seen before and not older than the cutoff, oldest first."""
        out = []
        cutoff = self._cutoff_ms()
        for row in rows:
            key = activity_key(row)
            if key in self._seen:
                continue
            signal = parse_activity(row)
            if signal is None:
                log.debug("activity_skipped", tx_hash=row.get("transactionHash"))
                continue
            # rows below the cutoff may have been evicted from _seen already
            if signal.timestamp < cutoff:
                continue
            self._seen[key] = signal.timestamp
            out.append(signal)
        if out:
            self._newest_ts_ms = max(self._newest_ts_ms, max(s.timestamp for s in out))
            self._evict()
        out.sort(key=lambda s: s.timestamp)
        return out

    def _cutoff_ms(self) -> int:
        """Oldest trade timestamp still emitted: start time or newest seen minus the window."""
        window_cutoff = self._newest_ts_ms - int(self.seen_window_sec * 1000)
        return max(self.start_ts_ms or 0, window_cutoff)

    def _evict(self) -> None:
        cutoff = self._cutoff_ms()
        stale = [k for k, ts in self._seen.items() if ts < cutoff]
        for k in stale:
            del self._seen[k]
        if stale:
            log.debug("activity_keys_evicted", count=len(stale), retained=len(self._seen))

    @property
    def seen_count(self) -> int:
        return len(self._seen)

    async def poll_once(self, client: httpx.AsyncClient, queue: asyncio.Queue[TradeSignal]) -> int:
        """One round over all targets. Returns the number of signals queued."""
        results = await asyncio.gather(*(self.fetch_activity(client, a) for a in self.target_addresses))
        count = 0
        for rows in results:
            for signal in self.new_signals(rows):
                queue.put_nowait(signal)
                count += 1
        self._emitted += count
        return count

    async def run(self, queue: asyncio.Queue[TradeSignal], stop_event: asyncio.Event | None = None) -> None:
        """Poll until stop_event is set."""
        stop = stop_event or asyncio.Event()
        if self.start_ts_ms is None:
            self.start_ts_ms = int(time.time() * 1000)
        client = self._client or httpx.AsyncClient(timeout=self.timeout)
        delay = self.fetch_interval_sec
        log.info("activity_poller_started", targets=len(self.target_addresses), interval=self.fetch_interval_sec)
        try:
            while not stop.is_set():
                try:
                    await self.poll_once(client, queue)
                    delay = self.fetch_interval_sec
                except (httpx.HTTPError, ValueError) as e:
                    delay = min(max(delay * 2, self.fetch_interval_sec), self.backoff_max_sec)
                    log.warning("activity_poll_error", error=str(e), delay=delay)
                try:
                    await asyncio.wait_for(stop.wait(), timeout=delay)
                except TimeoutError:
                    pass
        except asyncio.CancelledError:
            log.info("activity_poller_cancelled")
            raise
        finally:
            if self._client is None:
                await client.aclose()
        log.info("activity_poller_stopped", emitted=self._emitted)
