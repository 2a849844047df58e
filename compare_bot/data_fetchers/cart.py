# compare_bot/data_fetchers/cart.py
"""
In-memory shopping carts keyed by user id.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

from . import StoreError, product_not_found
from .catalog import get_by_sku

CURRENCY = "TRY"


def _not_in_cart(sku: str) -> StoreError:
    return StoreError(f"Product not in cart: {sku}", "NOT_IN_CART")


class CartStore:
    def __init__(self) -> None:
        # user_id -> ordered list of {"sku", "quantity"}
        self._carts: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def _require_product(self, sku: str) -> Dict[str, Any]:
        product = get_by_sku(sku)
        if not product:
            raise product_not_found(sku)
        return product

    def _find(self, user_id: str, sku: str) -> Optional[Dict[str, Any]]:
        for item in self._carts.get(user_id, []):
            if item["sku"] == sku:
                return item
        return None

    def get_cart(self, user_id: str) -> Dict[str, Any]:
        with self._lock:
            items = []
            for entry in self._carts.get(user_id, []):
                product = get_by_sku(entry["sku"]) or {"sku": entry["sku"], "price": 0}
                items.append({
                    **product,
                    "quantity": entry["quantity"],
                    "subtotal": product["price"] * entry["quantity"],
                })
            return {
                "items": items,
                "totalPrice": sum(i["subtotal"] for i in items),
                "currency": CURRENCY,
            }

    def add_to_cart(self, user_id: str, sku: str, quantity: int = 1) -> Dict[str, Any]:
        product = self._require_product(sku)
        sku = product["sku"]
        with self._lock:
            cart = self._carts.setdefault(user_id, [])
            existing = self._find(user_id, sku)
            if existing:
                existing["quantity"] += quantity
            else:
                existing = {"sku": sku, "quantity": quantity}
                cart.append(existing)
            return {
                "item": {**product, "quantity": existing["quantity"]},
                "cart": self.get_cart(user_id),
            }

    def update_quantity(self, user_id: str, sku: str, quantity: int) -> Dict[str, Any]:
        """Set an item's quantity; 0 removes the line."""
        product = self._require_product(sku)
        sku = product["sku"]
        with self._lock:
            existing = self._find(user_id, sku)
            if not existing:
                raise _not_in_cart(sku)
            if quantity == 0:
                self._carts[user_id].remove(existing)
                return {"item": None, "cart": self.get_cart(user_id)}
            existing["quantity"] = quantity
            return {
                "item": {**product, "quantity": quantity},
                "cart": self.get_cart(user_id),
            }

    def remove_from_cart(self, user_id: str, sku: str) -> Dict[str, Any]:
        product = self._require_product(sku)
        sku = product["sku"]
        with self._lock:
            existing = self._find(user_id, sku)
            if not existing:
                raise _not_in_cart(sku)
            self._carts[user_id].remove(existing)
            return {
                "removedItem": {**product, "quantity": existing["quantity"]},
                "cart": self.get_cart(user_id),
            }

    def clear_cart(self, user_id: str) -> Dict[str, Any]:
        with self._lock:
            removed = len(self._carts.pop(user_id, []))
        return {
            "cleared": True,
            "itemsRemoved": removed,
            "message": f"{removed} item(s) removed from cart",
        }
