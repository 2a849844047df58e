#!/usr/bin/env python3
"""
Product Comparison Assistant Entry Point
- Works under both Gunicorn (WSGI import) and python CLI.
- Ensures logging is initialized exactly once per process.
- Aligns Flask app logger with root logger for consistent output.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Tuple

from dotenv import load_dotenv
from flask import request

# Load env before any other imports that might read it
load_dotenv()

from compare_bot import create_app  # noqa: E402
from compare_bot.logging_setup import setup_logging  # noqa: E402

_LOGGING_INITIALIZED = False  # process-level guard


def init_logging() -> int:
    """Idempotent: won't add duplicate handlers if called multiple times."""
    global _LOGGING_INITIALIZED
    if not _LOGGING_INITIALIZED:
        setup_logging()
        _LOGGING_INITIALIZED = True
    return logging.getLogger().level


# --------------------------------------------------------------------------------------
# Environment validation
# --------------------------------------------------------------------------------------

def validate_environment(strict: bool) -> None:
    """
    Validate critical env vars.
    - If strict=True: exit on missing vars (CLI path).
    - If strict=False: log a warning (WSGI path) so the pod can come up and serve /health.
    """
    required = {
        "ANTHROPIC_API_KEY": "Anthropic API integration",
    }
    if os.getenv("TOOL_EXECUTOR", "local").lower() == "mcp":
        required["MCP_SERVER_ARGS"] = "MCP ecommerce server"
    missing = [f"{k} (required for {v})" for k, v in required.items() if not os.getenv(k)]

    if missing:
        msg = "Missing required environment variables: " + ", ".join(missing)
        if strict:
            print("Error:", msg)
            sys.exit(1)
        else:
            logging.getLogger(__name__).warning(msg)


def create_application(strict_env: bool = False):
    validate_environment(strict=strict_env)
    level = init_logging()

    app = create_app()

    # Propagate Flask's logger into the root handlers
    if app.logger.handlers:
        app.logger.handlers.clear()
    app.logger.propagate = True
    app.logger.setLevel(level)

    @app.before_request
    def _log_request():
        app.logger.info("→ %s %s", request.method, request.path)

    return app


# --------------------------------------------------------------------------------------
# Local dev server (python run.py)
# --------------------------------------------------------------------------------------

def _resolve_server_config() -> Tuple[str, int, bool]:
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "3001"))

    flask_debug = os.getenv("FLASK_DEBUG", "").lower()
    if flask_debug in ("1", "true", "yes", "on"):
        debug = True
    elif flask_debug in ("0", "false", "no", "off"):
        debug = False
    else:
        debug = os.getenv("APP_ENV", "development").lower() == "development"

    return host, port, debug


def _print_startup_info(host: str, port: int, debug: bool) -> None:
    print("Product Comparison Assistant Starting")
    print("=" * 60)
    print(f"Server:       http://{host}:{port}")
    print(f"Health check: http://{host}:{port}/health")
    print(f"Environment:  {os.getenv('APP_ENV', 'development')}")
    print(f"Debug mode:   {debug}")
    print(f"Tools:        {os.getenv('TOOL_EXECUTOR', 'local')}")
    print(f"Process ID:   {os.getpid()}")
    print("=" * 60)


def main() -> None:
    app = create_application(strict_env=True)

    host, port, debug = _resolve_server_config()
    _print_startup_info(host, port, debug)

    try:
        app.run(
            host=host,
            port=port,
            debug=debug,
            use_reloader=False,  # one engine loop per process
            threaded=True,
        )
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")


if __name__ == "__main__":
    main()
else:
    # WSGI entrypoint for Gunicorn: `gunicorn run:app`
    app = create_application(strict_env=False)
