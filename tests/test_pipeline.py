"""Execution pipeline: balance gate, dedup, outcomes, failure containment."""

import asyncio

import pytest

from helpers import FakeExchange, make_book, ok
from polyfront.engine.balance_cache import BalanceCache
from polyfront.engine.guards import DuplicateGuard
from polyfront.engine.pipeline import ExecutionPipeline
from polyfront.engine.walker import OrderWalker
from polyfront.errors import (
    BalanceSourceError,
    InsufficientGasBalance,
    InsufficientQuoteBalance,
    MarketClosedError,
    PriceProtectionError,
    RetryExhausted,
    UnexpectedWalkError,
)
from polyfront.models import ExecutionOutcome, FailureKind, OrderResult, TradeSignal

KILLED = OrderResult(success=False, error_msg="killed", failure=FailureKind.TRANSIENT)


def _signal(**overrides) -> TradeSignal:
    fields = dict(
        market_id="m1",
        token_id="tok",
        outcome="YES",
        side="BUY",
        size_usd=1000.0,
        timestamp=1_700_000_000_000,
        target_gas_price="1000",
    )
    fields.update(overrides)
    return TradeSignal(**fields)


@pytest.fixture
def make_pipeline(balances, clock, sleep):
    def build(exchange: FakeExchange) -> ExecutionPipeline:
        walker = OrderWalker(exchange, max_retries=3, min_remaining_usd=1.0, sleep=sleep)
        return ExecutionPipeline(
            walker,
            BalanceCache(balances, ttl_sec=5.0, clock=clock),
            DuplicateGuard(retention_sec=30.0, clock=clock),
            frontrun_size_multiplier=0.5,
            gas_price_multiplier=1.2,
            min_gas_balance=0.2,
        )

    return build


def test_fills_half_the_target(make_pipeline):
    exchange = FakeExchange()
    result = asyncio.run(make_pipeline(exchange).execute(_signal()))

    assert result.outcome == ExecutionOutcome.FILLED
    assert result.error is None
    assert result.frontrun_size_usd == 500
    assert result.filled_usd == 500
    assert exchange.orders[0].gas_price == 1200


def test_insufficient_quote_balance_skips_order_book(make_pipeline, balances):
    balances.quote = 400.0
    exchange = FakeExchange()
    result = asyncio.run(make_pipeline(exchange).execute(_signal()))

    assert isinstance(result.error, InsufficientQuoteBalance)
    assert result.outcome == ExecutionOutcome.ABORTED_BEFORE_SUBMISSION
    assert exchange.book_calls == 0
    assert exchange.market_calls == 0
    assert exchange.orders == []


def test_sell_without_quote_balance_proceeds(make_pipeline, balances):
    balances.quote = 0.0
    exchange = FakeExchange()
    result = asyncio.run(make_pipeline(exchange).execute(_signal(side="SELL", size_usd=192.0)))
    assert result.outcome == ExecutionOutcome.FILLED
    assert exchange.orders[0].side == "SELL"


def test_insufficient_gas_balance(make_pipeline, balances):
    balances.gas = 0.05
    exchange = FakeExchange()
    result = asyncio.run(make_pipeline(exchange).execute(_signal()))
    assert isinstance(result.error, InsufficientGasBalance)
    assert exchange.book_calls == 0


def test_concurrent_duplicate_runs_once(make_pipeline):
    exchange = FakeExchange()
    pipeline = make_pipeline(exchange)

    async def run():
        return await asyncio.gather(pipeline.execute(_signal()), pipeline.execute(_signal()))

    first, second = asyncio.run(run())
    assert not first.skipped
    assert second.skipped
    assert len(exchange.orders) == 1


def test_duplicate_blocked_within_retention(make_pipeline, clock):
    exchange = FakeExchange()
    pipeline = make_pipeline(exchange)

    assert not asyncio.run(pipeline.execute(_signal())).skipped
    clock.advance(10)
    assert asyncio.run(pipeline.execute(_signal())).skipped
    clock.advance(25)
    assert not asyncio.run(pipeline.execute(_signal())).skipped
    assert len(exchange.orders) == 2


def test_fill_invalidates_balance_cache(make_pipeline, balances):
    pipeline = make_pipeline(FakeExchange())
    asyncio.run(pipeline.execute(_signal(timestamp=1)))
    asyncio.run(pipeline.execute(_signal(timestamp=2)))
    assert balances.quote_calls == 2


def test_abort_without_fills_keeps_balance_cache(make_pipeline, balances):
    pipeline = make_pipeline(FakeExchange(books=[make_book(asks=[])]))
    first = asyncio.run(pipeline.execute(_signal(timestamp=1)))
    asyncio.run(pipeline.execute(_signal(timestamp=2)))
    assert first.outcome == ExecutionOutcome.ABORTED_BEFORE_SUBMISSION
    assert balances.quote_calls == 1


def test_retry_exhaustion_after_partial_is_partially_filled(make_pipeline):
    exchange = FakeExchange(books=[make_book(asks=[(0.5, 200)])], results=[ok(), KILLED])
    result = asyncio.run(make_pipeline(exchange).execute(_signal()))
    assert isinstance(result.error, RetryExhausted)
    assert result.outcome == ExecutionOutcome.PARTIALLY_FILLED
    assert result.filled_usd == 100


def test_terminal_error_after_partial(make_pipeline):
    closed = OrderResult(success=False, error_msg="market closed", failure=FailureKind.TERMINAL)
    exchange = FakeExchange(books=[make_book(asks=[(0.5, 200)])], results=[ok(), closed])
    result = asyncio.run(make_pipeline(exchange).execute(_signal()))
    assert result.outcome == ExecutionOutcome.ABORTED_AFTER_PARTIAL
    assert result.filled_usd == 100


def test_terminal_error_on_first_submission(make_pipeline):
    exchange = FakeExchange(results=[MarketClosedError("resolved")])
    result = asyncio.run(make_pipeline(exchange).execute(_signal()))
    assert isinstance(result.error, MarketClosedError)
    assert result.report.submitted == 1
    assert result.outcome == ExecutionOutcome.ABORTED_AFTER_PARTIAL


def test_retry_exhaustion_without_fills_counts_as_submitted(make_pipeline):
    exchange = FakeExchange(results=[KILLED])
    result = asyncio.run(make_pipeline(exchange).execute(_signal()))
    assert isinstance(result.error, RetryExhausted)
    assert result.report.submitted == 3
    assert result.filled_usd == 0
    assert result.outcome == ExecutionOutcome.ABORTED_AFTER_PARTIAL


def test_price_protection_is_before_submission(make_pipeline):
    exchange = FakeExchange(books=[make_book(asks=[(0.5, 2000)])])
    pipeline = make_pipeline(exchange)
    with pytest.raises(PriceProtectionError) as exc:
        asyncio.run(pipeline.walker.walk("tok", "BUY", 100.0, max_acceptable_price=0.4))
    assert exc.value.report.submitted == 0
    assert pipeline._outcome_for(exc.value.report, exc.value) == ExecutionOutcome.ABORTED_BEFORE_SUBMISSION


def test_balance_source_failure_is_contained(make_pipeline, balances, clock):
    balances.error = BalanceSourceError("rpc down")
    pipeline = make_pipeline(FakeExchange())
    result = asyncio.run(pipeline.execute(_signal()))
    assert isinstance(result.error, BalanceSourceError)
    assert not pipeline.guard._active


def test_unexpected_exception_is_contained(make_pipeline):
    exchange = FakeExchange(results=[RuntimeError("boom")])
    pipeline = make_pipeline(exchange)
    result = asyncio.run(pipeline.execute(_signal()))
    assert isinstance(result.error, UnexpectedWalkError)
    assert isinstance(result.error.__cause__, RuntimeError)
    assert result.outcome == ExecutionOutcome.ABORTED_AFTER_PARTIAL
    assert pipeline.guard.is_blocked(_signal().execution_key)


def test_unexpected_exception_after_fill_keeps_report(make_pipeline, balances):
    exchange = FakeExchange(books=[make_book(asks=[(0.5, 200)])], results=[ok(), RuntimeError("boom"), ok()])
    pipeline = make_pipeline(exchange)
    result = asyncio.run(pipeline.execute(_signal(timestamp=1)))

    assert isinstance(result.error, UnexpectedWalkError)
    assert result.filled_usd == 100
    assert result.report.submitted == 2
    assert result.outcome == ExecutionOutcome.ABORTED_AFTER_PARTIAL

    # USDC was spent, so the next signal refetches balances
    asyncio.run(pipeline.execute(_signal(timestamp=2)))
    assert balances.quote_calls == 2


def test_unexpected_exception_before_walk_is_contained(make_pipeline, balances):
    balances.error = RuntimeError("socket closed")
    result = asyncio.run(make_pipeline(FakeExchange()).execute(_signal()))
    assert isinstance(result.error, RuntimeError)
    assert result.report is None
    assert result.outcome == ExecutionOutcome.ABORTED_BEFORE_SUBMISSION
