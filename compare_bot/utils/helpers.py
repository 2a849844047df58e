"""
Utility helpers
"""

from __future__ import annotations

from typing import Any, Callable, List


def normalize_sku(sku: str) -> str:
    return sku.strip().upper()


def trim_history(
    history: List[Any],
    max_len: int,
    is_boundary: Callable[[Any], bool] | None = None,
) -> int:
    """
    Drop the oldest entries so at most ``max_len`` remain.

    When ``is_boundary`` is given, the window start is advanced further until
    it lands on an entry for which it returns True. Returns how many entries
    were removed.
    """
    if max_len <= 0:
        return 0
    overflow = len(history) - max_len
    if overflow <= 0:
        return 0
    start = overflow
    if is_boundary is not None:
        while start < len(history) - 1 and not is_boundary(history[start]):
            start += 1
    del history[:start]
    return start
