# compare_bot/routes/__init__.py
"""
Blueprint auto-registration.

Put any flask.Blueprint in `compare_bot/routes/<name>.py`
with the variable name **bp** and it will be discovered &
registered when `register_routes(app)` is called.

The app factory stores shared objects (engine loop, session
store, tool bridge, orchestrator) in `app.extensions` so route
modules can reach them through `current_app`.
"""

from __future__ import annotations

import importlib
import logging
import pkgutil
from types import ModuleType

from flask import Blueprint, Flask

log = logging.getLogger(__name__)


def register_routes(app: Flask) -> None:
    for _, name, _ in pkgutil.iter_modules(__path__):
        try:
            module: ModuleType = importlib.import_module(f"{__name__}.{name}")
        except Exception as e:
            log.error(f"REGISTER_ROUTES_ERROR | module={name} | error={e}")
            raise
        bp: Blueprint | None = getattr(module, "bp", None)
        if isinstance(bp, Blueprint):
            app.register_blueprint(bp)
            log.info(f"REGISTER_ROUTES_SUCCESS | blueprint={name}")
