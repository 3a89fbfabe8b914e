"""Canonical schema (Pydantic) - TradeSignal, OrderBook, Market, execution results."""

from polyfront.models.execution import (
    BalanceSnapshot,
    ExecutionOutcome,
    ExecutionResult,
    FailureKind,
    FilledOrder,
    FillReport,
    OrderRequest,
    OrderResult,
    WalkState,
)
from polyfront.models.market import Market
from polyfront.models.orderbook import OrderBookSnapshot, PriceLevel
from polyfront.models.signal import TradeSignal

__all__ = [
    "TradeSignal",
    "Market",
    "OrderBookSnapshot",
    "PriceLevel",
    "BalanceSnapshot",
    "OrderRequest",
    "OrderResult",
    "FailureKind",
    "FillReport",
    "FilledOrder",
    "WalkState",
    "ExecutionOutcome",
    "ExecutionResult",
]
