"""Balance, order and execution result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


@dataclass
class BalanceSnapshot:
    """Cached wallet balances. Both values share one freshness timestamp."""

    quote_balance: float | None = None  # USDC
    gas_balance: float | None = None  # POL
    refreshed_at: float = 0.0  # monotonic seconds, 0 when never refreshed


class FailureKind(str, Enum):
    TERMINAL = "terminal"
    TRANSIENT = "transient"


class OrderRequest(BaseModel):
    """Order the walker wants signed and submitted."""

    token_id: str
    side: str = Field(..., pattern="^(BUY|SELL)$")
    size: float = Field(..., gt=0)  # shares
    price: float = Field(..., gt=0)
    order_type: str = "FOK"
    gas_price: int | None = None  # priority hint (wei)

    @property
    def value_usd(self) -> float:
        return self.size * self.price


class OrderResult(BaseModel):
    """Venue response to a submitted order."""

    success: bool
    order_id: str | None = None
    status: str | None = None
    error_msg: str | None = None
    failure: FailureKind | None = None  # set by the exchange adapter when not successful
    raw: dict[str, Any] = Field(default_factory=dict)


class WalkState(str, Enum):
    VALIDATING = "validating"
    BOOK_FETCHED = "book_fetched"
    FILLING = "filling"
    DONE = "done"
    ABORTED = "aborted"


class ExecutionOutcome(str, Enum):
    FILLED = "filled"
    PARTIALLY_FILLED = "partially_filled"
    ABORTED_BEFORE_SUBMISSION = "aborted_before_submission"
    ABORTED_AFTER_PARTIAL = "aborted_after_partial"


@dataclass
class FilledOrder:
    order_id: str | None
    price: float
    size: float
    value_usd: float


@dataclass
class FillReport:
    """Progress of one order walk. Fills are final once recorded."""

    token_id: str
    side: str
    requested_usd: float
    remaining_usd: float
    state: WalkState = WalkState.VALIDATING
    orders: list[FilledOrder] = field(default_factory=list)
    retries: int = 0
    submitted: int = 0  # orders handed to the venue, filled or not

    @property
    def filled_usd(self) -> float:
        return sum(o.value_usd for o in self.orders)

    @property
    def has_fills(self) -> bool:
        return bool(self.orders)

    def record_fill(self, order: FilledOrder) -> None:
        self.orders.append(order)
        self.remaining_usd -= order.value_usd


@dataclass
class ExecutionResult:
    """What one pipeline run did. Logged, never persisted."""

    key: str
    outcome: ExecutionOutcome
    frontrun_size_usd: float = 0.0
    report: FillReport | None = None
    error: BaseException | None = None
    skipped: bool = False  # duplicate key, no work done

    @property
    def filled_usd(self) -> float:
        return self.report.filled_usd if self.report else 0.0
