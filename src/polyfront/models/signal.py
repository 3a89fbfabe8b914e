"""TradeSignal - a detected trade by a watched wallet."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TradeSignal(BaseModel):
    """Observed trade to frontrun. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    market_id: str
    token_id: str
    outcome: str = Field(..., pattern="^(YES|NO)$")
    side: str = Field(..., pattern="^(BUY|SELL)$")
    size_usd: float = Field(..., gt=0)
    timestamp: int  # ms epoch, detection time
    target_gas_price: str | None = None  # wei, from the observed transaction
    trader: str | None = None
    tx_hash: str | None = None

    @property
    def execution_key(self) -> str:
        """Active-execution key used for duplicate suppression."""
        return f"{self.token_id}-{self.side}-{self.timestamp}"
