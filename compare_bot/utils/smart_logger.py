# compare_bot/utils/smart_logger.py
"""
Turn-flow logging for the orchestrator.
Clean, contextual one-line events with configurable verbosity.
"""

import logging
import os
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class LogLevel(Enum):
    MINIMAL = 1      # Turn start / end and errors
    STANDARD = 2     # State changes, rounds, tool dispatch
    DETAILED = 3     # Grounding sizes and timing
    DEBUG = 4        # Everything


class TurnLogger:
    def __init__(self, name: str, level: LogLevel = LogLevel.STANDARD):
        self.logger = logging.getLogger(name)
        self.level = level
        self._request_contexts: Dict[str, str] = {}

    def set_level(self, level: LogLevel):
        self.level = level

    def _should_log(self, required_level: LogLevel) -> bool:
        return self.level.value >= required_level.value

    def _format_request_id(self, session_id: str) -> str:
        timestamp = datetime.now().strftime('%H%M%S')
        return f"{session_id[-6:]}_{timestamp}"

    def _req(self, session_id: str) -> str:
        return self._request_contexts.get(session_id, "unknown")

    def _clean_log(self, level: str, emoji: str, category: str, message: str, **kwargs):
        details = " | ".join([f"{k}={v}" for k, v in kwargs.items() if v is not None])
        if details:
            full_message = f"{emoji} {category} | {message} | {details}"
        else:
            full_message = f"{emoji} {category} | {message}"
        getattr(self.logger, level.lower())(full_message)

    # ═══════════════════════════════════════════════════════════
    # FLOW EVENTS
    # ═══════════════════════════════════════════════════════════

    def turn_start(self, session_id: str, text: str, streaming: bool):
        req_id = self._format_request_id(session_id)
        self._request_contexts[session_id] = req_id
        if not self._should_log(LogLevel.MINIMAL):
            return
        preview = text[:50] + "..." if len(text) > 50 else text
        self._clean_log("info", "🚀", "TURN_START", f"'{preview}'", req=req_id, stream=streaming)

    def state(self, session_id: str, state: Enum, **details: Any):
        if not self._should_log(LogLevel.STANDARD):
            return
        self._clean_log("info", "🎯", "STATE", state.value, req=self._req(session_id), **details)

    def grounding(self, session_id: str, explicit: int, retrieved: int, tools: int):
        if not self._should_log(LogLevel.DETAILED):
            return
        self._clean_log("info", "📋", "GROUNDING", "context assembled",
                        req=self._req(session_id), explicit=explicit, retrieved=retrieved, tools=tools)

    def tool_dispatch(self, session_id: str, tool: str, round_no: int, is_error: Optional[bool] = None):
        if not self._should_log(LogLevel.STANDARD):
            return
        status = "started" if is_error is None else ("error" if is_error else "ok")
        self._clean_log("info", "🔧", "TOOL", tool, req=self._req(session_id), round=round_no, status=status)

    def round_budget_exhausted(self, session_id: str, rounds: int):
        self._clean_log("warning", "⚠️", "ROUND_CAP", "tool budget exhausted", req=self._req(session_id), rounds=rounds)

    def committed(self, session_id: str, rounds: int, reply_chars: int, elapsed_time: float):
        if self._should_log(LogLevel.MINIMAL):
            self._clean_log("info", "✅", "COMMIT", "turn committed", req=self._req(session_id),
                            rounds=rounds, chars=reply_chars, time=f"{elapsed_time:.3f}s")
        self._request_contexts.pop(session_id, None)

    def rolled_back(self, session_id: str, reason: str):
        if self._should_log(LogLevel.MINIMAL):
            self._clean_log("info", "↩️", "ROLLBACK", reason, req=self._req(session_id))
        self._request_contexts.pop(session_id, None)

    def error_occurred(self, session_id: str, error_type: str, operation: str, error_msg: str = None):
        # Errors are always logged regardless of level
        self._clean_log("error", "❌", "ERROR", f"{error_type} in {operation}",
                        req=self._req(session_id), msg=error_msg)


_loggers: Dict[str, TurnLogger] = {}


def get_turn_logger(module_name: str, level: LogLevel = None) -> TurnLogger:
    """Get or create a turn logger for a module"""
    if module_name not in _loggers:
        default_level = getattr(LogLevel, os.getenv('BOT_LOG_LEVEL', 'STANDARD').upper(), LogLevel.STANDARD)
        _loggers[module_name] = TurnLogger(module_name, level or default_level)
    if level:
        _loggers[module_name].set_level(level)
    return _loggers[module_name]
