"""Frontrun sizing."""

from __future__ import annotations


def calculate_frontrun_size(target_size_usd: float, multiplier: float) -> float:
    """Size to trade for an observed trade of `target_size_usd`. Multiplier in (0, 1]."""
    return target_size_usd * multiplier


def priority_gas_price(target_gas_price: str | None, multiplier: float) -> int | None:
    """Gas price to outbid the observed transaction, or None when it carried none."""
    if not target_gas_price:
        return None
    try:
        base = int(target_gas_price, 0)
    except ValueError:
        return None
    return int(base * multiplier)
