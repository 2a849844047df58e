from __future__ import annotations

import concurrent.futures
import logging
import queue
import time
from typing import Any, Dict

from flask import Blueprint, Response, current_app, request, stream_with_context

from ..data_fetchers.catalog import get_products_by_sku
from ..enums import StreamEvent
from ..errors import ModelBackendError, SessionNotFound
from ..utils.api import fail, ok, validate_chat_body
from ..utils.cancel import CancelToken
from ..utils.sse import make_event

log = logging.getLogger(__name__)

bp = Blueprint("chat", __name__)

_END = object()


def _prepare_session(session_id: str, skus: Any) -> None:
    store = current_app.extensions["session_store"]
    store.ensure(session_id)
    if skus:
        store.add_products(session_id, get_products_by_sku(skus))


@bp.post("/api/chat")
def chat_stream() -> Response:
    cfg = current_app.extensions["config"]
    data: Dict[str, Any] = request.get_json(silent=True) or {}

    # Validation errors return JSON, before any SSE frame
    invalid = validate_chat_body(data, cfg.MAX_MESSAGE_LENGTH, cfg.MAX_SKUS)
    if invalid:
        return invalid

    session_id: str = data["sessionId"]
    message: str = data["message"]
    _prepare_session(session_id, data.get("skus"))

    engine = current_app.extensions["engine"]
    orchestrator = current_app.extensions["orchestrator"]
    timeout = cfg.TURN_TIMEOUT_SECONDS

    events: "queue.Queue[Any]" = queue.Queue()
    token = CancelToken()

    def sink(event: StreamEvent, payload: Dict[str, Any]) -> None:
        events.put((event.value, payload))

    async def drive() -> None:
        try:
            await orchestrator.run_turn_streaming(session_id, message, sink, token)
        finally:
            events.put(_END)

    engine.submit(drive())
    log.info(f"SSE_TURN_SUBMITTED | session={session_id} | chars={len(message)}")

    deadline = time.monotonic() + timeout

    def generate():
        finished = False
        try:
            while True:
                try:
                    item = events.get(timeout=max(0.0, deadline - time.monotonic()))
                except queue.Empty:
                    token.cancel()
                    log.error(f"SSE_TURN_TIMEOUT | session={session_id} | after={timeout}s")
                    yield make_event(StreamEvent.ERROR.value, {"message": "Request timed out", "code": "TIMEOUT"})
                    finished = True
                    return
                if item is _END:
                    finished = True
                    return
                event, payload = item
                if event != StreamEvent.DELTA.value:
                    log.info(f"SSE_EMIT | event={event} | session={session_id}")
                yield make_event(event, payload)
        finally:
            if not finished:
                # Client went away mid-stream
                token.cancel()
                log.info(f"SSE_CLIENT_DISCONNECTED | session={session_id}")

    headers = {
        "Cache-Control": "no-cache, no-transform",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return Response(stream_with_context(generate()), headers=headers, mimetype="text/event-stream")


@bp.post("/api/chat/sync")
def chat_sync():
    cfg = current_app.extensions["config"]
    data: Dict[str, Any] = request.get_json(silent=True) or {}

    invalid = validate_chat_body(data, cfg.MAX_MESSAGE_LENGTH, cfg.MAX_SKUS)
    if invalid:
        return invalid

    session_id: str = data["sessionId"]
    _prepare_session(session_id, data.get("skus"))

    engine = current_app.extensions["engine"]
    orchestrator = current_app.extensions["orchestrator"]
    try:
        reply = engine.run(orchestrator.run_turn(session_id, data["message"]), timeout=cfg.TURN_TIMEOUT_SECONDS)
    except SessionNotFound as e:
        return fail(str(e), e.code, 404)
    except ModelBackendError as e:
        log.error(f"CHAT_SYNC_MODEL_ERROR | session={session_id} | error={e}")
        return fail("The language model is unavailable, please try again", e.code, 502)
    except concurrent.futures.TimeoutError:
        log.error(f"CHAT_SYNC_TIMEOUT | session={session_id}")
        return fail("Request timed out", "TIMEOUT", 504)
    except Exception:
        log.exception(f"CHAT_SYNC_FAILED | session={session_id}")
        return fail("An error occurred", "INTERNAL_ERROR", 500)

    return ok({"reply": reply, "sessionId": session_id})
