"""Test fakes: clock, sleep, balance source, scripted exchange."""

from __future__ import annotations

from typing import Any

from polyfront.models import Market, OrderBookSnapshot, OrderRequest, OrderResult, PriceLevel


def make_book(asks=None, bids=None, token_id: str = "tok") -> OrderBookSnapshot:
    """Book from [(price, size), ...] lists, best level first."""
    return OrderBookSnapshot(
        token_id=token_id,
        asks=[PriceLevel(price=p, size=s) for p, s in (asks or [])],
        bids=[PriceLevel(price=p, size=s) for p, s in (bids or [])],
    )


def ok(order_id: str = "o1") -> OrderResult:
    return OrderResult(success=True, order_id=order_id, status="matched")


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeBalanceSource:
    def __init__(self, quote: float = 1000.0, gas: float = 1.0) -> None:
        self.quote = quote
        self.gas = gas
        self.quote_calls = 0
        self.gas_calls = 0
        self.error: Exception | None = None

    async def get_quote_balance(self) -> float:
        self.quote_calls += 1
        if self.error is not None:
            raise self.error
        return self.quote

    async def get_gas_balance(self) -> float:
        self.gas_calls += 1
        if self.error is not None:
            raise self.error
        return self.gas


class FakeExchange:
    """Scripted venue. Books and post results are consumed in order; the last one repeats."""

    def __init__(
        self,
        books: list[OrderBookSnapshot | Exception] | None = None,
        results: list[OrderResult | Exception] | None = None,
        market: Market | Exception | None = None,
    ) -> None:
        self.books = list(books or [make_book(asks=[(0.5, 2000)], bids=[(0.48, 2000)])])
        self.results = list(results or [ok()])
        self.market = market if market is not None else Market(market_id="m1", question="Will it?")
        self.book_calls = 0
        self.market_calls = 0
        self.orders: list[OrderRequest] = []

    @staticmethod
    def _next(items: list[Any]) -> Any:
        item = items.pop(0) if len(items) > 1 else items[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def get_market(self, market_id: str) -> Market | None:
        self.market_calls += 1
        if isinstance(self.market, Exception):
            raise self.market
        return self.market if self.market.market_id == market_id else None

    async def get_order_book(self, token_id: str) -> OrderBookSnapshot:
        self.book_calls += 1
        return self._next(self.books)

    async def create_order(self, request: OrderRequest) -> Any:
        self.orders.append(request)
        return {"signed": request}

    async def post_order(self, signed_order: Any, order_type: str = "FOK") -> OrderResult:
        assert order_type == "FOK"
        return self._next(self.results)


