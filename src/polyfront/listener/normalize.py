"""Polymarket data-api activity rows -> TradeSignal."""

from __future__ import annotations

from typing import Any

from polyfront.models import TradeSignal

_OUTCOME_BY_INDEX = {0: "YES", 1: "NO"}


def _float(s: Any) -> float:
    try:
        return float(s)
    except (TypeError, ValueError):
        return 0.0


def _outcome(row: dict[str, Any]) -> str | None:
    label = str(row.get("outcome") or "").upper()
    if label in ("YES", "NO"):
        return label
    try:
        return _OUTCOME_BY_INDEX.get(int(row.get("outcomeIndex")))
    except (TypeError, ValueError):
        return None


def activity_key(row: dict[str, Any]) -> str:
    """Stable identity of one activity row (a tx can fill several tokens)."""
    return f"{row.get('transactionHash')}:{row.get('asset')}:{row.get('side')}"


def parse_activity(row: dict[str, Any]) -> TradeSignal | None:
    """Convert a data-api TRADE activity row to TradeSignal. None when unusable."""
    if str(row.get("type") or "TRADE").upper() != "TRADE":
        return None
    side = str(row.get("side") or "").upper()
    if side not in ("BUY", "SELL"):
        return None
    outcome = _outcome(row)
    market_id = str(row.get("conditionId") or "")
    token_id = str(row.get("asset") or "")
    if outcome is None or not market_id or not token_id:
        return None
    size_usd = _float(row.get("usdcSize")) or _float(row.get("size")) * _float(row.get("price"))
    if size_usd <= 0:
        return None
    ts = row.get("timestamp")
    try:
        ts_int = int(ts)
    except (TypeError, ValueError):
        return None
    # data-api reports seconds
    timestamp_ms = ts_int * 1000 if ts_int < 10**12 else ts_int
    return TradeSignal(
        market_id=market_id,
        token_id=token_id,
        outcome=outcome,
        side=side,
        size_usd=size_usd,
        timestamp=timestamp_ms,
        target_gas_price=None,
        trader=row.get("proxyWallet"),
        tx_hash=row.get("transactionHash"),
    )
