# compare_bot/enums.py
from enum import Enum


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class BlockType(str, Enum):
    TEXT = "text"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"


class StopReason(str, Enum):
    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"


class TurnState(str, Enum):
    """Lifecycle of a single user turn."""
    IDLE = "idle"
    GROUNDING = "grounding"
    MODEL_CALL = "model_call"
    TOOL_ROUND = "tool_round"
    FINALIZING = "finalizing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class StreamEvent(str, Enum):
    """Named events delivered to the chat widget over SSE."""
    DELTA = "delta"
    TOOL_START = "tool_start"
    TOOL_END = "tool_end"
    DONE = "done"
    ERROR = "error"


class ToolCacheState(str, Enum):
    UNFETCHED = "unfetched"
    READY = "ready"      # fetched; the list may be genuinely empty
    FAILED = "failed"    # fetch raised; retried after a cool-down
