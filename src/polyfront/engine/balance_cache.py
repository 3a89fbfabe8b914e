"""Time-bounded cache of the wallet's USDC and POL balances."""

from __future__ import annotations

import time
from typing import Callable

import structlog

from polyfront.exchange.base import BalanceSource
from polyfront.models import BalanceSnapshot

log = structlog.get_logger(__name__)


class BalanceCache:
    """Caches both balances for `ttl_sec`, shared by all in-flight pipelines.

    Both balances share one freshness timestamp: refreshing either one resets
    it for both, so a cached value can outlive its own TTL when the other
    balance was refreshed in between.
    """

    def __init__(
        self,
        source: BalanceSource,
        ttl_sec: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source = source
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._snapshot = BalanceSnapshot()

    def _expired(self, now: float) -> bool:
        return now - self._snapshot.refreshed_at > self.ttl_sec

    async def get_quote_balance(self) -> float:
        now = self._clock()
        if self._snapshot.quote_balance is None or self._expired(now):
            self._snapshot.quote_balance = await self.source.get_quote_balance()
            self._snapshot.refreshed_at = now
            log.debug("balance_refreshed", asset="quote", value=self._snapshot.quote_balance)
        return self._snapshot.quote_balance

    async def get_gas_balance(self) -> float:
        now = self._clock()
        if self._snapshot.gas_balance is None or self._expired(now):
            self._snapshot.gas_balance = await self.source.get_gas_balance()
            self._snapshot.refreshed_at = now
            log.debug("balance_refreshed", asset="gas", value=self._snapshot.gas_balance)
        return self._snapshot.gas_balance

    def invalidate(self) -> None:
        self._snapshot.quote_balance = None
        self._snapshot.gas_balance = None
        self._snapshot.refreshed_at = 0.0

    def snapshot(self) -> BalanceSnapshot:
        """Copy of the current cached state."""
        s = self._snapshot
        return BalanceSnapshot(quote_balance=s.quote_balance, gas_balance=s.gas_balance, refreshed_at=s.refreshed_at)
