# compare_bot/routes/context.py
"""
/api/chat/context - attach products to a session without sending a message.

POST body:
{
  "sessionId": "abc123",
  "skus": ["SKU-IP15", "SKU-S24"]
}
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Blueprint, current_app, request

from ..data_fetchers.catalog import get_products_by_sku
from ..utils.api import fail, ok, validate_skus

log = logging.getLogger(__name__)
bp = Blueprint("context", __name__)


@bp.post("/api/chat/context")
def add_context():
    cfg = current_app.extensions["config"]
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    session_id = data.get("sessionId")
    skus = data.get("skus")

    if not session_id or not isinstance(session_id, str) or skus is None:
        return fail("sessionId (string) and skus (list) are required", "MISSING_FIELDS")
    invalid = validate_skus(skus, cfg.MAX_SKUS)
    if invalid:
        return invalid

    store = current_app.extensions["session_store"]
    products = get_products_by_sku(skus)
    added = store.add_products(session_id, products)
    not_found = [p["sku"] for p in products if p.get("error")]
    if not_found:
        log.info(f"CONTEXT_SKUS_NOT_FOUND | session={session_id} | skus={not_found}")

    return ok({
        "sessionId": session_id,
        "added": added,
        "notFound": not_found,
        "products": store.products_for(session_id),
    })
