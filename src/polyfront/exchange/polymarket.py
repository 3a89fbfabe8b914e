"""Polymarket CLOB adapter over py-clob-client, with typed error classification.

py-clob-client is synchronous; every call runs in a worker thread so the
event loop keeps dispatching signals while a request is in flight.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Callable, TypeVar

import structlog
from py_clob_client.client import ClobClient
from py_clob_client.clob_types import ApiCreds, MarketOrderArgs, OrderType
from py_clob_client.exceptions import PolyApiException
from py_clob_client.order_builder.constants import BUY, SELL

from polyfront.errors import (
    ExchangeError,
    InsufficientFundsError,
    MarketClosedError,
    OrderRejected,
    TransientExchangeError,
)
from polyfront.exchange.normalize import parse_market, parse_order_book
from polyfront.models import FailureKind, Market, OrderBookSnapshot, OrderRequest, OrderResult

if TYPE_CHECKING:
    from polyfront.config.settings import Settings

log = structlog.get_logger(__name__)

T = TypeVar("T")

_CLOSED_MARKERS = ("closed", "resolved", "no orderbook exists", "not accepting orders", "market not found")
_FUNDS_MARKERS = ("insufficient", "not enough balance", "allowance")


def classify_message(message: str, status_code: int | None = None) -> FailureKind:
    """Terminal vs transient for a venue error message / HTTP status."""
    text = (message or "").lower()
    if status_code == 404 or any(m in text for m in _CLOSED_MARKERS):
        return FailureKind.TERMINAL
    if any(m in text for m in _FUNDS_MARKERS):
        return FailureKind.TERMINAL
    return FailureKind.TRANSIENT


def to_exchange_error(exc: BaseException) -> ExchangeError:
    """Map a py-clob-client / transport exception to the typed taxonomy."""
    if isinstance(exc, ExchangeError):
        return exc
    if isinstance(exc, PolyApiException):
        status = getattr(exc, "status_code", None)
        message = str(getattr(exc, "error_msg", None) or exc)
        text = message.lower()
        if status == 404 or any(m in text for m in _CLOSED_MARKERS):
            return MarketClosedError(message, status_code=status)
        if any(m in text for m in _FUNDS_MARKERS):
            return InsufficientFundsError(message, status_code=status)
        if status is None or status == 429 or status >= 500:
            return TransientExchangeError(message, status_code=status)
        return OrderRejected(message, status_code=status)
    # transport failures (httpx, timeouts, resets) and anything unexpected are retried
    return TransientExchangeError(f"{type(exc).__name__}: {exc}")


class PolymarketExchange:
    """ExchangeClient backed by the Polymarket CLOB."""

    venue_id = "polymarket"

    def __init__(self, client: ClobClient) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> PolymarketExchange:
        """Build an authenticated client (L2 creds from settings, else derived from the key)."""
        client = ClobClient(
            host=settings.clob_api_base,
            key=settings.private_key,
            chain_id=settings.chain_id,
            signature_type=settings.signature_type,
            funder=settings.proxy_wallet or None,
        )
        creds = settings.api_credentials
        if creds is not None:
            client.set_api_creds(
                ApiCreds(
                    api_key=creds["key"],
                    api_secret=creds["secret"],
                    api_passphrase=creds["passphrase"],
                )
            )
        else:
            client.set_api_creds(client.create_or_derive_api_creds())
        log.info("clob_client_ready", host=settings.clob_api_base, funder=settings.proxy_wallet)
        return cls(client)

    async def _call(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except Exception as e:
            raise to_exchange_error(e) from e

    async def get_market(self, market_id: str) -> Market | None:
        """Return the market, or None when the venue does not know it."""
        try:
            raw = await self._call(self._client.get_market, market_id)
        except MarketClosedError as e:
            if e.status_code == 404:
                return None
            raise
        if not raw:
            return None
        return parse_market(raw)

    async def get_order_book(self, token_id: str) -> OrderBookSnapshot:
        raw = await self._call(self._client.get_order_book, token_id)
        return parse_order_book(raw, token_id)

    async def create_order(self, request: OrderRequest) -> Any:
        """Sign a market order. BUY amounts are USDC, SELL amounts are shares."""
        side = BUY if request.side == "BUY" else SELL
        amount = request.value_usd if request.side == "BUY" else request.size
        args = MarketOrderArgs(
            token_id=request.token_id,
            amount=amount,
            side=side,
            price=request.price,
            order_type=getattr(OrderType, request.order_type),
        )
        if request.gas_price is not None:
            # CLOB matching is off-chain; the hint only shows up in logs
            log.debug("order_priority_hint", token_id=request.token_id, gas_price=request.gas_price)
        return await self._call(self._client.create_market_order, args)

    async def post_order(self, signed_order: Any, order_type: str = "FOK") -> OrderResult:
        """Submit a signed order. Rejections come back as OrderResult(success=False)."""
        try:
            resp = await self._call(self._client.post_order, signed_order, getattr(OrderType, order_type))
        except OrderRejected as e:
            return OrderResult(
                success=False,
                error_msg=str(e),
                failure=FailureKind.TRANSIENT,
                raw={"status_code": e.status_code},
            )
        payload = resp if isinstance(resp, dict) else {}
        success = bool(payload.get("success"))
        error_msg = payload.get("errorMsg") or payload.get("error") or None
        return OrderResult(
            success=success,
            order_id=payload.get("orderID") or payload.get("orderId"),
            status=payload.get("status"),
            error_msg=error_msg,
            failure=None if success else classify_message(error_msg or ""),
            raw=payload,
        )
