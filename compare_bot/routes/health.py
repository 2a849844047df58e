# compare_bot/routes/health.py
"""
Simple readiness and liveness check.

Returns HTTP 200 while the engine loop is running, otherwise 500
(so Cloud Run / Kubernetes can restart the pod).
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify

log = logging.getLogger(__name__)
bp = Blueprint("health", __name__)


@bp.get("/health")
def health_check():
    engine = current_app.extensions.get("engine")
    store = current_app.extensions.get("session_store")
    bridge = current_app.extensions.get("tool_bridge")

    if engine is None or not engine.running or store is None:
        log.warning("HEALTH_UNHEALTHY | engine not running")
        return jsonify({"status": "unhealthy", "engine": "stopped", "service": "compare-bot"}), 500

    return jsonify({
        "status": "healthy",
        "engine": "running",
        "service": "compare-bot",
        "tools": bridge.state.value if bridge is not None else None,
        **store.stats(),
    }), 200
