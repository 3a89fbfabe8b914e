"""Exponential backoff for order-walk retries."""

from __future__ import annotations


def backoff_delay(retries: int, base_delay: float = 1.0, max_delay: float = 5.0) -> float:
    """Delay in seconds before the next attempt after `retries` consecutive failures.

    retries=1 -> 2s, 2 -> 4s, 3+ -> capped at max_delay.
    """
    return min(base_delay * (2**retries), max_delay)
