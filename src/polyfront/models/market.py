"""Market - metadata returned by a market lookup."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Market(BaseModel):
    """Canonical market - venue-agnostic."""

    market_id: str  # condition ID on Polymarket
    venue: str = "polymarket"
    question: str = ""
    active: bool = True
    closed: bool = False
    accepting_orders: bool = True
    token_ids: list[str] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)
