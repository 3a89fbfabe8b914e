"""Signal source protocol."""

from __future__ import annotations

import asyncio
from typing import Protocol

from polyfront.models import TradeSignal


class SignalSource(Protocol):
    """Produces TradeSignals into a channel until stopped. No acknowledgment flows back."""

    async def run(
        self,
        queue: asyncio.Queue[TradeSignal],
        stop_event: asyncio.Event | None = None,
    ) -> None: ...
