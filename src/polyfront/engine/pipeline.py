"""Execution pipeline - one detected trade in, at most one order walk out, never raises."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Awaitable, Callable

import structlog

from polyfront.engine.balance_cache import BalanceCache
from polyfront.engine.guards import DuplicateGuard, check_balances
from polyfront.engine.sizing import calculate_frontrun_size, priority_gas_price
from polyfront.engine.walker import OrderWalker
from polyfront.errors import (
    InsufficientBalanceError,
    MarketValidationError,
    NoLiquidityError,
    PolyfrontError,
    PriceProtectionError,
    RetryExhausted,
    TerminalExchangeError,
    UnexpectedWalkError,
)
from polyfront.exchange.base import BalanceSource, ExchangeClient
from polyfront.models import ExecutionOutcome, ExecutionResult, FillReport, TradeSignal

if TYPE_CHECKING:
    from polyfront.config.settings import Settings

log = structlog.get_logger(__name__)

# Expected ways for a walk to end early; logged as warnings, not errors.
_EXPECTED_ABORTS = (
    TerminalExchangeError,
    MarketValidationError,
    NoLiquidityError,
    PriceProtectionError,
    RetryExhausted,
)


class ExecutionPipeline:
    """Owns the shared engine state (balance cache, dedup keys) for every in-flight signal."""

    def __init__(
        self,
        walker: OrderWalker,
        balance_cache: BalanceCache,
        guard: DuplicateGuard,
        *,
        frontrun_size_multiplier: float = 0.5,
        gas_price_multiplier: float = 1.0,
        min_gas_balance: float = 0.2,
    ) -> None:
        self.walker = walker
        self.balance_cache = balance_cache
        self.guard = guard
        self.frontrun_size_multiplier = frontrun_size_multiplier
        self.gas_price_multiplier = gas_price_multiplier
        self.min_gas_balance = min_gas_balance

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        exchange: ExchangeClient,
        balance_source: BalanceSource,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> ExecutionPipeline:
        walker = OrderWalker(
            exchange,
            max_retries=settings.max_retries,
            min_remaining_usd=settings.min_remaining_usd,
            backoff_base_sec=settings.backoff_base_sec,
            backoff_max_sec=settings.backoff_max_sec,
            sleep=sleep,
        )
        return cls(
            walker,
            BalanceCache(balance_source, ttl_sec=settings.balance_cache_ttl_sec, clock=clock),
            DuplicateGuard(retention_sec=settings.dedup_retention_sec, clock=clock),
            frontrun_size_multiplier=settings.frontrun_size_multiplier,
            gas_price_multiplier=settings.gas_price_multiplier,
            min_gas_balance=settings.min_gas_balance,
        )

    def _outcome_for(self, report: FillReport | None, error: BaseException | None) -> ExecutionOutcome:
        if report is None or report.submitted == 0:
            return ExecutionOutcome.ABORTED_BEFORE_SUBMISSION
        if not report.has_fills:
            return ExecutionOutcome.ABORTED_AFTER_PARTIAL
        if error is None or isinstance(error, RetryExhausted):
            if report.remaining_usd <= self.walker.min_remaining_usd:
                return ExecutionOutcome.FILLED
            return ExecutionOutcome.PARTIALLY_FILLED
        return ExecutionOutcome.ABORTED_AFTER_PARTIAL

    async def execute(self, signal: TradeSignal) -> ExecutionResult:
        """Run the full frontrun for one signal. Failures are logged and returned, never raised."""
        key = signal.execution_key
        if not self.guard.try_admit(key):
            log.debug("frontrun_skipped_duplicate", key=key)
            return ExecutionResult(key=key, outcome=ExecutionOutcome.ABORTED_BEFORE_SUBMISSION, skipped=True)

        bound = log.bind(key=key, market_id=signal.market_id, side=signal.side, outcome=signal.outcome)
        frontrun_size = 0.0
        report: FillReport | None = None
        error: BaseException | None = None
        try:
            quote_balance, gas_balance = await asyncio.gather(
                self.balance_cache.get_quote_balance(),
                self.balance_cache.get_gas_balance(),
            )
            bound.info("frontrun_balance_check", pol=round(gas_balance, 4), usdc=round(quote_balance, 2))

            frontrun_size = calculate_frontrun_size(signal.size_usd, self.frontrun_size_multiplier)
            bound.info("frontrun_executing", size_usd=round(frontrun_size, 2), target_usd=round(signal.size_usd, 2))

            check_balances(frontrun_size, signal.side, quote_balance, gas_balance, self.min_gas_balance)

            report = await self.walker.walk(
                signal.token_id,
                signal.side,
                frontrun_size,
                market_id=signal.market_id,
                gas_price=priority_gas_price(signal.target_gas_price, self.gas_price_multiplier),
            )
        except InsufficientBalanceError as e:
            error = e
            bound.warning("frontrun_insufficient_balance", error=str(e), required=e.required, available=e.available)
        except _EXPECTED_ABORTS as e:
            error, report = e, e.report
            bound.warning("frontrun_aborted", reason=type(e).__name__, error=str(e), filled_usd=_filled(report))
        except UnexpectedWalkError as e:
            error, report = e, e.report
            bound.exception("frontrun_failed_unexpected", error=str(e), filled_usd=_filled(report))
        except PolyfrontError as e:
            error, report = e, e.report
            bound.error("frontrun_failed", reason=type(e).__name__, error=str(e), filled_usd=_filled(report))
        except Exception as e:
            error = e
            bound.exception("frontrun_failed_unexpected", error=str(e))
        finally:
            self.guard.release(key)

        if report is not None and report.has_fills:
            self.balance_cache.invalidate()

        outcome = self._outcome_for(report, error)
        if error is None:
            bound.info("frontrun_completed", outcome=outcome.value, filled_usd=_filled(report))
        return ExecutionResult(key=key, outcome=outcome, frontrun_size_usd=frontrun_size, report=report, error=error)


def _filled(report: FillReport | None) -> float:
    return round(report.filled_usd, 2) if report else 0.0
