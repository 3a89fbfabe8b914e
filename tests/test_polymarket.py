"""Polymarket adapter: payload parsing and error classification."""

import asyncio

import pytest
from py_clob_client.exceptions import PolyApiException

from polyfront.errors import (
    InsufficientFundsError,
    MarketClosedError,
    OrderRejected,
    TransientExchangeError,
)
from polyfront.exchange.normalize import parse_market, parse_order_book
from polyfront.exchange.polymarket import PolymarketExchange, classify_message, to_exchange_error
from polyfront.models import FailureKind, OrderRequest


def _api_error(message, status=None) -> PolyApiException:
    exc = PolyApiException(error_msg=message)
    exc.status_code = status
    return exc


class StubClobClient:
    def __init__(self, market=None, book=None, post=None, error=None):
        self.market = market
        self.book = book
        self.post = post
        self.error = error
        self.market_args = []

    def _maybe_raise(self):
        if self.error is not None:
            raise self.error

    def get_market(self, condition_id):
        self._maybe_raise()
        return self.market

    def get_order_book(self, token_id):
        self._maybe_raise()
        return self.book

    def create_market_order(self, args):
        self.market_args.append(args)
        return {"signed": args.token_id}

    def post_order(self, order, order_type):
        self._maybe_raise()
        return self.post


def test_order_book_sorted_best_first():
    raw = {
        "market": "0xcond",
        "asset_id": "tok",
        "timestamp": "1700000000000",
        "bids": [{"price": "0.40", "size": "10"}, {"price": "0.45", "size": "5"}],
        "asks": [{"price": "0.60", "size": "3"}, {"price": "0.55", "size": "7"}],
    }
    book = parse_order_book(raw, "tok")
    assert [lev.price for lev in book.bids] == [0.45, 0.40]
    assert [lev.price for lev in book.asks] == [0.55, 0.60]
    assert book.market_id == "0xcond"
    assert book.exchange_ts == 1700000000000


def test_order_book_unparseable_levels_become_zero():
    book = parse_order_book({"asks": [{"price": "nan", "size": "5"}, {"price": "x", "size": None}]}, "tok")
    assert all(lev.price == 0 for lev in book.asks)
    assert book.token_id == "tok"


def test_parse_market():
    market = parse_market(
        {
            "condition_id": "0xabc",
            "question": "Will it rain?",
            "closed": True,
            "tokens": [{"token_id": "1", "outcome": "Yes"}, {"token_id": "2", "outcome": "No"}],
        }
    )
    assert market.market_id == "0xabc"
    assert market.closed
    assert market.token_ids == ["1", "2"]


@pytest.mark.parametrize(
    "message,status,expected",
    [
        ("market is closed", None, FailureKind.TERMINAL),
        ("not enough balance / allowance", 400, FailureKind.TERMINAL),
        ("anything", 404, FailureKind.TERMINAL),
        ("order couldn't be fully filled. FOK orders are fully filled or killed.", None, FailureKind.TRANSIENT),
        ("", None, FailureKind.TRANSIENT),
    ],
)
def test_classify_message(message, status, expected):
    assert classify_message(message, status) == expected


def test_to_exchange_error_mapping():
    assert isinstance(to_exchange_error(_api_error("whatever", 404)), MarketClosedError)
    assert isinstance(to_exchange_error(_api_error("No orderbook exists for the requested token id", 400)), MarketClosedError)
    assert isinstance(to_exchange_error(_api_error("not enough balance", 400)), InsufficientFundsError)
    assert isinstance(to_exchange_error(_api_error("rate limited", 429)), TransientExchangeError)
    assert isinstance(to_exchange_error(_api_error("bad gateway", 502)), TransientExchangeError)
    assert isinstance(to_exchange_error(_api_error("invalid tick size", 400)), OrderRejected)
    assert isinstance(to_exchange_error(ConnectionResetError("reset")), TransientExchangeError)
    assert to_exchange_error(_api_error("gone", 404)).terminal
    assert not to_exchange_error(_api_error("bad gateway", 502)).terminal


def test_get_market_returns_none_for_unknown():
    exchange = PolymarketExchange(StubClobClient(error=_api_error("market not found", 404)))
    assert asyncio.run(exchange.get_market("0xmissing")) is None


def test_get_market_propagates_transient_errors():
    exchange = PolymarketExchange(StubClobClient(error=_api_error("timeout", 503)))
    with pytest.raises(TransientExchangeError):
        asyncio.run(exchange.get_market("0xabc"))


def test_get_order_book_maps_errors():
    exchange = PolymarketExchange(StubClobClient(error=_api_error("No orderbook exists", 404)))
    with pytest.raises(MarketClosedError):
        asyncio.run(exchange.get_order_book("tok"))


def test_create_order_amounts():
    stub = StubClobClient()
    exchange = PolymarketExchange(stub)
    asyncio.run(exchange.create_order(OrderRequest(token_id="tok", side="BUY", size=1000, price=0.5)))
    asyncio.run(exchange.create_order(OrderRequest(token_id="tok", side="SELL", size=200, price=0.48)))
    buy, sell = stub.market_args
    assert buy.amount == pytest.approx(500)
    assert buy.price == 0.5
    assert sell.amount == pytest.approx(200)


def test_post_order_success():
    stub = StubClobClient(post={"success": True, "orderID": "0xord", "status": "matched", "errorMsg": ""})
    result = asyncio.run(PolymarketExchange(stub).post_order({"signed": "tok"}))
    assert result.success
    assert result.order_id == "0xord"
    assert result.failure is None


def test_post_order_unsuccessful_payload_is_classified():
    stub = StubClobClient(post={"success": False, "errorMsg": "market is closed"})
    result = asyncio.run(PolymarketExchange(stub).post_order({"signed": "tok"}))
    assert not result.success
    assert result.failure == FailureKind.TERMINAL


def test_post_order_rejection_becomes_result():
    stub = StubClobClient(error=_api_error("order couldn't be fully filled", 400))
    result = asyncio.run(PolymarketExchange(stub).post_order({"signed": "tok"}))
    assert not result.success
    assert result.failure == FailureKind.TRANSIENT
    assert result.raw == {"status_code": 400}


def test_post_order_terminal_error_raises():
    stub = StubClobClient(error=_api_error("not enough balance / allowance", 400))
    with pytest.raises(InsufficientFundsError):
        asyncio.run(PolymarketExchange(stub).post_order({"signed": "tok"}))
