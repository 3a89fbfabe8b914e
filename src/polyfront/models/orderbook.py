"""PriceLevel, OrderBookSnapshot - top-of-book view of one outcome token."""

from __future__ import annotations

from pydantic import BaseModel, Field


class PriceLevel(BaseModel):
    """Single price level (price -> size)."""

    price: float = Field(..., ge=0)
    size: float = Field(..., ge=0)


class OrderBookSnapshot(BaseModel):
    """L2 book snapshot as returned by the venue. Only level 0 is consumed."""

    token_id: str
    market_id: str | None = None
    venue: str = "polymarket"
    bids: list[PriceLevel] = Field(default_factory=list)
    asks: list[PriceLevel] = Field(default_factory=list)
    exchange_ts: int | None = None  # ms epoch

    def levels_for(self, side: str) -> list[PriceLevel]:
        """Side a taker order of `side` consumes: asks for BUY, bids for SELL."""
        return self.asks if side == "BUY" else self.bids

    def best_level(self, side: str) -> PriceLevel | None:
        levels = self.levels_for(side)
        return levels[0] if levels else None
