"""Order walker - fill a USD target against top-of-book with fill-or-kill orders.

States: VALIDATING -> BOOK_FETCHED -> FILLING -> DONE | ABORTED.

Each pass sizes one FOK order against the best level of a freshly fetched
book (the initial book is reused for the first pass only). Successful fills
reset the retry counter; failures increment it and force a refetch. Terminal
venue errors abort immediately, transient ones back off exponentially. Fills
are never rolled back: every error raised out of ``walk`` is a PolyfrontError
carrying the FillReport in ``error.report``, with foreign exceptions wrapped
in UnexpectedWalkError.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import structlog

from polyfront.engine.backoff import backoff_delay
from polyfront.errors import (
    ExchangeError,
    MarketValidationError,
    NoLiquidityError,
    OrderRejected,
    PolyfrontError,
    PriceProtectionError,
    RetryExhausted,
    TerminalExchangeError,
    UnexpectedWalkError,
)
from polyfront.exchange.base import ExchangeClient
from polyfront.models import (
    FailureKind,
    FilledOrder,
    FillReport,
    OrderBookSnapshot,
    OrderRequest,
    OrderResult,
    WalkState,
)

log = structlog.get_logger(__name__)


def _rejection_error(result: OrderResult) -> ExchangeError:
    message = result.error_msg or "order rejected"
    if result.failure == FailureKind.TERMINAL:
        return TerminalExchangeError(message)
    return OrderRejected(message)


class OrderWalker:
    """Submits FOK orders level by level until the target is filled or the walk gives up."""

    def __init__(
        self,
        exchange: ExchangeClient,
        *,
        max_retries: int = 3,
        min_remaining_usd: float = 1.0,
        backoff_base_sec: float = 1.0,
        backoff_max_sec: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.exchange = exchange
        self.max_retries = max_retries
        self.min_remaining_usd = min_remaining_usd
        self.backoff_base_sec = backoff_base_sec
        self.backoff_max_sec = backoff_max_sec
        self._sleep = sleep

    async def walk(
        self,
        token_id: str,
        side: str,
        size_usd: float,
        *,
        market_id: str | None = None,
        max_acceptable_price: float | None = None,
        gas_price: int | None = None,
    ) -> FillReport:
        """Fill up to `size_usd`. Returns the report; partial fills are not errors."""
        report = FillReport(token_id=token_id, side=side, requested_usd=size_usd, remaining_usd=size_usd)
        try:
            await self._validate(market_id)
            book = await self._fetch_initial_book(token_id, side, max_acceptable_price, report)
            await self._fill(book, report, gas_price)
        except PolyfrontError as e:
            report.state = WalkState.ABORTED
            e.report = report
            raise
        except Exception as e:
            report.state = WalkState.ABORTED
            err = UnexpectedWalkError(f"Order walk failed: {type(e).__name__}: {e}", token_id=token_id)
            err.report = report
            raise err from e
        report.state = WalkState.DONE
        return report

    async def _validate(self, market_id: str | None) -> None:
        if not market_id:
            return
        try:
            market = await self.exchange.get_market(market_id)
        except ExchangeError as e:
            raise MarketValidationError(f"Market validation failed: {e}", market_id=market_id) from e
        if market is None:
            raise MarketValidationError(f"Market not found: {market_id}", market_id=market_id)
        log.debug("market_validated", market_id=market_id, question=market.question)

    async def _fetch_initial_book(
        self,
        token_id: str,
        side: str,
        max_acceptable_price: float | None,
        report: FillReport,
    ) -> OrderBookSnapshot:
        book = await self.exchange.get_order_book(token_id)
        report.state = WalkState.BOOK_FETCHED
        levels = book.levels_for(side)
        log.debug("orderbook_fetched", token_id=token_id, side=side, levels=len(levels))
        if not levels:
            raise NoLiquidityError(
                f"No {'asks' if side == 'BUY' else 'bids'} available for token {token_id}",
                token_id=token_id,
            )
        best_price = levels[0].price
        if max_acceptable_price is not None and (
            (side == "BUY" and best_price > max_acceptable_price)
            or (side == "SELL" and best_price < max_acceptable_price)
        ):
            raise PriceProtectionError(
                f"Price protection: best price {best_price} worse than limit {max_acceptable_price}",
                best_price=best_price,
                limit=max_acceptable_price,
            )
        return book

    async def _backoff(self, retries: int, report: FillReport) -> None:
        delay = backoff_delay(retries, self.backoff_base_sec, self.backoff_max_sec)
        log.debug("walk_backoff", token_id=report.token_id, retries=retries, delay=delay)
        await self._sleep(delay)

    async def _fill(self, book: OrderBookSnapshot, report: FillReport, gas_price: int | None) -> None:
        report.state = WalkState.FILLING
        token_id, side = report.token_id, report.side
        held: OrderBookSnapshot | None = book
        retries = 0
        last_error: ExchangeError | None = None

        while report.remaining_usd > self.min_remaining_usd and retries < self.max_retries:
            if held is None:
                try:
                    held = await self.exchange.get_order_book(token_id)
                except ExchangeError as e:
                    retries += 1
                    last_error = e
                    report.retries = retries
                    if e.terminal:
                        raise
                    if retries >= self.max_retries:
                        break
                    await self._backoff(retries, report)
                    continue

            level = held.best_level(side)
            if level is None:
                log.info("walk_liquidity_exhausted", token_id=token_id, remaining_usd=report.remaining_usd)
                break
            if level.price <= 0 or level.size <= 0:
                retries += 1
                report.retries = retries
                held = None
                continue

            level_value = level.size * level.price
            order_value = min(report.remaining_usd, level_value)
            order_size = order_value / level.price
            if order_size <= 0 or order_value <= 0:
                break

            request = OrderRequest(
                token_id=token_id,
                side=side,
                size=order_size,
                price=level.price,
                gas_price=gas_price,
            )
            # post-trade (or post-failure) book is stale either way
            held = None
            try:
                signed = await self.exchange.create_order(request)
                report.submitted += 1
                result = await self.exchange.post_order(signed, request.order_type)
            except ExchangeError as e:
                error = e
            else:
                if result.success:
                    report.record_fill(
                        FilledOrder(order_id=result.order_id, price=level.price, size=order_size, value_usd=order_value)
                    )
                    retries = 0
                    report.retries = 0
                    log.info(
                        "walk_order_filled",
                        token_id=token_id,
                        side=side,
                        price=level.price,
                        size=round(order_size, 4),
                        value_usd=round(order_value, 2),
                        remaining_usd=round(report.remaining_usd, 2),
                    )
                    continue
                error = _rejection_error(result)

            retries += 1
            last_error = error
            report.retries = retries
            log.warning(
                "walk_order_failed",
                token_id=token_id,
                retries=retries,
                terminal=error.terminal,
                error=str(error),
            )
            if error.terminal:
                raise error
            if retries >= self.max_retries:
                break
            await self._backoff(retries, report)

        if report.remaining_usd > self.min_remaining_usd and retries >= self.max_retries:
            raise RetryExhausted(
                f"Gave up after {retries} retries with {report.remaining_usd:.2f} USD unfilled",
                retries=retries,
                last_error=last_error,
            )
