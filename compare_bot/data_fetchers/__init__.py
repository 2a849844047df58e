# compare_bot/data_fetchers/__init__.py
"""
Flat data stores behind the assistant: product catalog, carts, favorites,
and the vector index used for retrieval.
"""

from __future__ import annotations


class StoreError(Exception):
    """Domain error raised by the in-memory stores."""

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


def product_not_found(sku: str) -> StoreError:
    return StoreError(f"Product not found: {sku}", "PRODUCT_NOT_FOUND")
