"""Polymarket CLOB payloads -> canonical Market / OrderBookSnapshot."""

from __future__ import annotations

from typing import Any

from polyfront.models import Market, OrderBookSnapshot, PriceLevel


def _float(s: str | float | None) -> float:
    if s is None:
        return 0.0
    try:
        value = float(s)
    except (TypeError, ValueError):
        return 0.0
    # NaN never compares positive; walker treats 0 as an unusable level
    return value if value == value else 0.0


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a dict payload or a py-clob-client dataclass."""
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _parse_levels(raw_levels: Any) -> list[PriceLevel]:
    levels = []
    for lev in raw_levels or []:
        p, s = _float(_get(lev, "price")), _float(_get(lev, "size"))
        if p < 0 or s < 0:
            continue
        levels.append(PriceLevel(price=p, size=s))
    return levels


def _sorted_best_first(levels: list[PriceLevel], descending: bool) -> list[PriceLevel]:
    return sorted(levels, key=lambda lev: lev.price, reverse=descending)


def parse_order_book(raw: Any, token_id: str) -> OrderBookSnapshot:
    """Convert a CLOB /book payload to OrderBookSnapshot with the best level first.

    The CLOB lists bids ascending and asks descending (best level last), so
    both sides are re-sorted here: bids high->low, asks low->high.
    """
    bids = _sorted_best_first(_parse_levels(_get(raw, "bids")), descending=True)
    asks = _sorted_best_first(_parse_levels(_get(raw, "asks")), descending=False)
    ts = _get(raw, "timestamp")
    try:
        exchange_ts = int(ts) if ts not in (None, "") else None
    except (TypeError, ValueError):
        exchange_ts = None
    market_id = _get(raw, "market")
    return OrderBookSnapshot(
        token_id=str(_get(raw, "asset_id") or token_id),
        market_id=str(market_id) if market_id else None,
        bids=bids,
        asks=asks,
        exchange_ts=exchange_ts,
    )


def parse_market(raw: dict[str, Any]) -> Market:
    """Convert a CLOB /markets/{condition_id} payload to Market."""
    tokens = raw.get("tokens") or []
    token_ids = [str(t.get("token_id")) for t in tokens if isinstance(t, dict) and t.get("token_id")]
    return Market(
        market_id=str(raw.get("condition_id") or raw.get("conditionId") or ""),
        question=raw.get("question", "") or "",
        active=bool(raw.get("active", True)),
        closed=bool(raw.get("closed", False)),
        accepting_orders=bool(raw.get("accepting_orders", True)),
        token_ids=token_ids,
        extra={"slug": raw.get("market_slug"), "neg_risk": raw.get("neg_risk")},
    )
