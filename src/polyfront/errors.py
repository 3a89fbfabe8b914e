"""Error taxonomy for configuration, balance checks, and order execution."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from polyfront.models.execution import FillReport


class PolyfrontError(Exception):
    """Base for all polyfront errors.

    Errors raised from inside the order walk carry the walk's ``FillReport``
    in ``report`` once the walker has attached it (``None`` before that).
    """

    def __init__(self, message: str = "", **context: Any) -> None:
        super().__init__(message)
        self.context = context
        self.report: FillReport | None = None


class ConfigError(PolyfrontError):
    """Invalid configuration detected at startup."""


# --- Balance Guard (pre-submission) ---
class InsufficientBalanceError(PolyfrontError):
    """Wallet cannot cover the frontrun."""

    def __init__(self, message: str, *, required: float, available: float) -> None:
        super().__init__(message, required=required, available=available)
        self.required = required
        self.available = available


class InsufficientQuoteBalance(InsufficientBalanceError):
    """USDC balance below the frontrun size for a BUY."""


class InsufficientGasBalance(InsufficientBalanceError):
    """POL balance below the minimum needed for gas."""


# --- Order walk, pre-submission ---
class MarketValidationError(PolyfrontError):
    """Market lookup failed or the market does not exist."""


class NoLiquidityError(PolyfrontError):
    """Book side to trade against is absent or empty."""


class PriceProtectionError(PolyfrontError):
    """Best price is worse than the worst acceptable price."""


# --- Venue / network, classified once at the exchange boundary ---
class ExchangeError(PolyfrontError):
    """Failure reported by the exchange or the transport."""

    terminal: bool = False

    def __init__(self, message: str, *, status_code: int | None = None, **context: Any) -> None:
        super().__init__(message, status_code=status_code, **context)
        self.status_code = status_code


class TerminalExchangeError(ExchangeError):
    """Retrying cannot succeed (market closed/resolved, funds missing)."""

    terminal = True


class MarketClosedError(TerminalExchangeError):
    """Market is closed or resolved, or has no order book anymore."""


class InsufficientFundsError(TerminalExchangeError):
    """Venue reports insufficient balance or allowance."""


class TransientExchangeError(ExchangeError):
    """Network hiccup, rate limit, 5xx, or a rejection worth retrying."""


class OrderRejected(TransientExchangeError):
    """Order not accepted (e.g. FOK order killed because the level moved)."""


class RetryExhausted(PolyfrontError):
    """Retry ceiling reached before the target size was filled."""

    def __init__(self, message: str, *, retries: int, last_error: BaseException | None = None) -> None:
        super().__init__(message, retries=retries)
        self.retries = retries
        self.last_error = last_error


class BalanceSourceError(PolyfrontError):
    """RPC failure while reading wallet balances."""


class UnexpectedWalkError(PolyfrontError):
    """Non-library failure inside the order walk. The original is chained as ``__cause__``."""
