# compare_bot/routes/reset.py
"""
/api/reset - drops a conversation session so a client can start fresh
without restarting the backend.

POST body:
{
  "sessionId": "abc123"
}
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Blueprint, current_app, request

from ..utils.api import fail, ok

log = logging.getLogger(__name__)
bp = Blueprint("reset", __name__)


@bp.post("/api/reset")
def reset_session():
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    session_id = data.get("sessionId")
    if not session_id or not isinstance(session_id, str):
        return fail("sessionId is required (string)", "MISSING_FIELDS")

    store = current_app.extensions["session_store"]
    removed = store.reset(session_id)
    return ok({"sessionId": session_id, "reset": removed})
