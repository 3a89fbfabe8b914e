"""Protocols for the collaborators the execution engine consumes."""

from __future__ import annotations

from typing import Any, Protocol

from polyfront.models import Market, OrderBookSnapshot, OrderRequest, OrderResult


class ExchangeClient(Protocol):
    """Venue operations used by the order walker.

    Implementations raise typed errors from polyfront.errors
    (TerminalExchangeError / TransientExchangeError) and set
    OrderResult.failure on unsuccessful submissions.
    """

    async def get_market(self, market_id: str) -> Market | None: ...

    async def get_order_book(self, token_id: str) -> OrderBookSnapshot: ...

    async def create_order(self, request: OrderRequest) -> Any:
        """Sign a market order; returns a venue-specific signed order."""
        ...

    async def post_order(self, signed_order: Any, order_type: str = "FOK") -> OrderResult: ...


class BalanceSource(Protocol):
    """Wallet balances: quote currency (USDC) and gas token (POL)."""

    async def get_quote_balance(self) -> float: ...

    async def get_gas_balance(self) -> float: ...
