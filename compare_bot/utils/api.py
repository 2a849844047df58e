"""
JSON envelope used by every /api route:

    {"success": bool, "data": ..., "error": {"message", "code"} | null, "statusCode": int}
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from flask import Response, jsonify


def ok(data: Any, status: int = 200) -> Tuple[Response, int]:
    return jsonify({"success": True, "data": data, "error": None, "statusCode": status}), status


def fail(message: str, code: str, status: int = 400) -> Tuple[Response, int]:
    return jsonify({
        "success": False,
        "data": None,
        "error": {"message": message, "code": code},
        "statusCode": status,
    }), status


def validate_skus(skus: Any, max_skus: int) -> Optional[Tuple[Response, int]]:
    if skus is None:
        return None
    if not isinstance(skus, list) or len(skus) > max_skus or not all(isinstance(s, str) for s in skus):
        return fail(f"skus must be a list of at most {max_skus} strings", "INVALID_SKUS")
    return None


def validate_chat_body(body: Dict[str, Any], max_length: int, max_skus: int) -> Optional[Tuple[Response, int]]:
    message = body.get("message")
    session_id = body.get("sessionId")
    if not message or not isinstance(message, str) or not session_id or not isinstance(session_id, str):
        return fail("message and sessionId are required (string)", "MISSING_FIELDS")
    if len(message) > max_length:
        return fail(f"message may be at most {max_length} characters", "MESSAGE_TOO_LONG")
    return validate_skus(body.get("skus"), max_skus)
