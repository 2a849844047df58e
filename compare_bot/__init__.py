"""
Product Comparison Assistant - Application Factory
==================================================

Wires the turn engine into Flask:
- EngineLoop (one asyncio loop on a daemon thread)
- SessionStore (in-memory sessions + idle sweep)
- ToolBridge over a local or MCP tool executor
- RetrievalGate / ContextAssembler over the vector index
- TurnOrchestrator driving model <-> tool rounds
"""

from __future__ import annotations

import atexit
import logging
from typing import Any, Optional

from flask import Flask
from flask_cors import CORS

from .config import get_config
from .context_builder import ContextAssembler, RetrievalGate
from .engine_loop import EngineLoop
from .orchestrator import TurnOrchestrator
from .routes import register_routes
from .session_store import SessionStore
from .tool_bridge import ToolBridge
from .tool_executors import build_tool_executor

log = logging.getLogger(__name__)


def _build_product_search(cfg) -> Optional[Any]:
    if not cfg.RETRIEVAL_ENABLED:
        log.info("INIT_RETRIEVAL | disabled")
        return None
    from .data_fetchers.vector_search import VectorProductSearch
    search = VectorProductSearch(cfg.VECTOR_STORE_PATH, cfg.EMBEDDING_MODEL)
    log.info(f"INIT_RETRIEVAL_SUCCESS | path={cfg.VECTOR_STORE_PATH} | indexed={search.count()}")
    return search


def _build_model_backend(cfg) -> Any:
    from .streaming import AnthropicStreamer
    return AnthropicStreamer.from_config(cfg)


def create_app(
    config_name: Optional[str] = None,
    *,
    model_backend: Any = None,
    tool_executor: Any = None,
    product_search: Any = None,
) -> Flask:
    """
    App factory. Collaborators can be injected (tests pass fakes); anything not
    injected is built from configuration.

    INITIALIZATION ORDER:
    1. Engine loop
    2. Session store + sweeper
    3. Tool bridge, retrieval, model backend, orchestrator
    4. CORS + routes
    """
    cfg = get_config(config_name)
    app = Flask(__name__)
    app.config["SECRET_KEY"] = cfg.SECRET_KEY
    app.config["JSON_SORT_KEYS"] = cfg.JSON_SORT_KEYS
    app.config["TESTING"] = getattr(cfg, "TESTING", False)

    # ────────────────────────────────────────────────────────
    # STEP 1: Engine loop
    # ────────────────────────────────────────────────────────
    engine = EngineLoop().start()

    # ────────────────────────────────────────────────────────
    # STEP 2: Sessions
    # ────────────────────────────────────────────────────────
    store = SessionStore(
        ttl_seconds=cfg.SESSION_TTL_SECONDS,
        sweep_interval_seconds=cfg.SESSION_SWEEP_INTERVAL_SECONDS,
    )

    async def _start_sweeper() -> None:
        store.start_sweeper()

    engine.run(_start_sweeper())

    # ────────────────────────────────────────────────────────
    # STEP 3: Turn engine
    # ────────────────────────────────────────────────────────
    try:
        bridge = ToolBridge(tool_executor if tool_executor is not None else build_tool_executor(cfg), cfg.TOOLS_RETRY_AFTER_SECONDS)
        search = product_search if product_search is not None else _build_product_search(cfg)
        assembler = ContextAssembler(RetrievalGate(search, cfg.RETRIEVAL_TOP_K, cfg.RETRIEVAL_SCORE_THRESHOLD))
        orchestrator = TurnOrchestrator(
            store,
            bridge,
            model_backend if model_backend is not None else _build_model_backend(cfg),
            assembler,
            max_rounds=cfg.MAX_TOOL_ROUNDS,
            max_history=cfg.MAX_HISTORY_MESSAGES,
        )
        log.info(
            f"INIT_ENGINE_SUCCESS | model={cfg.LLM_MODEL} | executor={type(bridge.executor).__name__} | retrieval={search is not None}"
        )
    except Exception as e:
        log.error(f"INIT_ENGINE_ERROR | error={e}", exc_info=True)
        engine.stop(store.stop_sweeper)
        raise RuntimeError(f"Failed to initialize turn engine: {e}") from e

    app.extensions["config"] = cfg
    app.extensions["engine"] = engine
    app.extensions["session_store"] = store
    app.extensions["tool_bridge"] = bridge
    app.extensions["orchestrator"] = orchestrator

    # ────────────────────────────────────────────────────────
    # STEP 4: CORS + routes
    # ────────────────────────────────────────────────────────
    cors_origins_env = (cfg.CORS_ALLOW_ORIGINS or "").strip()
    if cors_origins_env:
        allowed_origins = [o.strip() for o in cors_origins_env.split(",") if o.strip()]
    else:
        allowed_origins = ["*"]

    CORS(
        app,
        resources={r"/api/*": {
            "origins": allowed_origins,
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
        }},
        supports_credentials=False,
    )

    register_routes(app)

    async def _shutdown() -> None:
        await store.stop_sweeper()
        close = getattr(bridge.executor, "close", None)
        if close is not None:
            await close()

    app.extensions["shutdown"] = _shutdown
    atexit.register(engine.stop, _shutdown)
    return app
