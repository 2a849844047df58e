"""
Error taxonomy for the turn engine.

Only SessionNotFound and ModelBackendError ever reach a caller. Tool and
retrieval failures are contained inside the turn.
"""
from __future__ import annotations


class CompareBotError(Exception):
    code = "INTERNAL_ERROR"


class SessionNotFound(CompareBotError):
    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class ModelBackendError(CompareBotError):
    code = "MODEL_BACKEND_ERROR"


class ToolExecutionError(CompareBotError):
    code = "TOOL_EXECUTION_ERROR"

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class RetrievalError(CompareBotError):
    code = "RETRIEVAL_ERROR"


class CancellationSignaled(CompareBotError):
    code = "CANCELLED"
