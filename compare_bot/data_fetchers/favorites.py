# compare_bot/data_fetchers/favorites.py
from __future__ import annotations

import threading
from typing import Any, Dict, List

from . import StoreError, product_not_found
from .catalog import get_by_sku


class FavoritesStore:
    def __init__(self) -> None:
        # user_id -> SKUs in insertion order
        self._favorites: Dict[str, Dict[str, None]] = {}
        self._lock = threading.RLock()

    def get_favorites(self, user_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            skus = list(self._favorites.get(user_id, {}))
        return [p for p in (get_by_sku(s) for s in skus) if p]

    def add_favorite(self, user_id: str, sku: str) -> Dict[str, Any]:
        product = get_by_sku(sku)
        if not product:
            raise product_not_found(sku)
        with self._lock:
            user_favs = self._favorites.setdefault(user_id, {})
            if product["sku"] in user_favs:
                raise StoreError(f"Product already in favorites: {product['sku']}", "ALREADY_IN_FAVORITES")
            user_favs[product["sku"]] = None
        return product

    def remove_favorite(self, user_id: str, sku: str) -> Dict[str, Any]:
        product = get_by_sku(sku)
        if not product:
            raise product_not_found(sku)
        with self._lock:
            user_favs = self._favorites.get(user_id, {})
            if product["sku"] not in user_favs:
                raise StoreError(f"Product not in favorites: {product['sku']}", "NOT_IN_FAVORITES")
            del user_favs[product["sku"]]
        return product
