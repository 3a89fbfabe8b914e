"""Pre-flight guards: wallet solvency and duplicate-execution suppression."""

from __future__ import annotations

import time
from typing import Callable

import structlog

from polyfront.errors import InsufficientGasBalance, InsufficientQuoteBalance

log = structlog.get_logger(__name__)


def check_balances(
    frontrun_size: float,
    side: str,
    quote_balance: float,
    gas_balance: float,
    min_gas_balance: float,
) -> None:
    """Raise if the wallet cannot fund the frontrun. SELLs need no USDC."""
    if side == "BUY" and quote_balance < frontrun_size:
        raise InsufficientQuoteBalance(
            f"Insufficient USDC balance. Required: {frontrun_size:.2f} USDC, Available: {quote_balance:.2f} USDC",
            required=frontrun_size,
            available=quote_balance,
        )
    if gas_balance < min_gas_balance:
        raise InsufficientGasBalance(
            f"Insufficient POL balance for gas. Required: {min_gas_balance} POL, Available: {gas_balance:.4f} POL",
            required=min_gas_balance,
            available=gas_balance,
        )


class DuplicateGuard:
    """At most one pipeline per execution key; keys stay blocked for `retention_sec` after release.

    Expired keys are swept lazily on the next admission attempt.
    """

    def __init__(self, retention_sec: float = 30.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.retention_sec = retention_sec
        self._clock = clock
        self._active: set[str] = set()
        self._expires_at: dict[str, float] = {}

    def _sweep(self, now: float) -> None:
        expired = [k for k, t in self._expires_at.items() if t <= now]
        for k in expired:
            del self._expires_at[k]
        if expired:
            log.debug("dedup_keys_expired", count=len(expired), retained=len(self._expires_at))

    def try_admit(self, key: str) -> bool:
        """Mark `key` in flight. False when it is in flight or still retained."""
        self._sweep(self._clock())
        if key in self._active or key in self._expires_at:
            return False
        self._active.add(key)
        return True

    def release(self, key: str) -> None:
        """Finish `key`; it stays blocked until retention elapses."""
        self._active.discard(key)
        self._expires_at[key] = self._clock() + self.retention_sec

    def is_blocked(self, key: str) -> bool:
        now = self._clock()
        return key in self._active or self._expires_at.get(key, now) > now

    def __len__(self) -> int:
        return len(self._active) + len(self._expires_at)
