"""
Dataclass models for sessions, conversation history and model I/O.

Content blocks are a closed set: TextBlock, ToolUseBlock, ToolResultBlock.
Each converts to the Anthropic Messages API shape via ``to_api()``.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from .enums import BlockType, Role, StopReason


# ────────────────────────────────────────────────────────────
# Content blocks
# ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TextBlock:
    text: str

    def to_api(self) -> Dict[str, Any]:
        return {"type": BlockType.TEXT.value, "text": self.text}


@dataclass(frozen=True)
class ToolUseBlock:
    id: str
    name: str
    args: Dict[str, Any] = field(default_factory=dict)

    def to_api(self) -> Dict[str, Any]:
        return {
            "type": BlockType.TOOL_USE.value,
            "id": self.id,
            "name": self.name,
            "input": dict(self.args),
        }


@dataclass(frozen=True)
class ToolResultBlock:
    tool_use_id: str
    text: str
    is_error: bool = False

    def to_api(self) -> Dict[str, Any]:
        block: Dict[str, Any] = {
            "type": BlockType.TOOL_RESULT.value,
            "tool_use_id": self.tool_use_id,
            "content": self.text,
        }
        if self.is_error:
            block["is_error"] = True
        return block


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def block_from_api(raw: Any) -> Optional[ContentBlock]:
    """
    Convert an SDK content block (or its dict form) into our dataclass.
    Block types we do not model (thinking, server tools) map to None.
    """
    btype = _field(raw, "type")
    if btype == BlockType.TEXT.value:
        return TextBlock(text=_field(raw, "text", "") or "")
    if btype == BlockType.TOOL_USE.value:
        return ToolUseBlock(
            id=_field(raw, "id", ""),
            name=_field(raw, "name", ""),
            args=dict(_field(raw, "input", {}) or {}),
        )
    if btype == BlockType.TOOL_RESULT.value:
        content = _field(raw, "content", "")
        if isinstance(content, list):
            content = "".join(_field(c, "text", "") or "" for c in content)
        return ToolResultBlock(
            tool_use_id=_field(raw, "tool_use_id", ""),
            text=content or "",
            is_error=bool(_field(raw, "is_error", False)),
        )
    return None


# ────────────────────────────────────────────────────────────
# Messages & sessions
# ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Message:
    role: Role
    content: Union[str, Tuple[ContentBlock, ...]]

    @classmethod
    def user_text(cls, text: str) -> "Message":
        return cls(Role.USER, text)

    @classmethod
    def assistant_text(cls, text: str) -> "Message":
        return cls(Role.ASSISTANT, text)

    @classmethod
    def assistant_blocks(cls, blocks: List[ContentBlock]) -> "Message":
        return cls(Role.ASSISTANT, tuple(blocks))

    @classmethod
    def tool_results(cls, results: List[ToolResultBlock]) -> "Message":
        return cls(Role.USER, tuple(results))

    @property
    def is_plain_user_text(self) -> bool:
        return self.role == Role.USER and isinstance(self.content, str)

    def to_api(self) -> Dict[str, Any]:
        if isinstance(self.content, str):
            return {"role": self.role.value, "content": self.content}
        return {"role": self.role.value, "content": [b.to_api() for b in self.content]}


@dataclass
class Session:
    id: str
    explicit_products: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    history: List[Message] = field(default_factory=list)
    last_activity_at: float = 0.0

    def snapshot(self) -> List[Message]:
        # Messages are frozen, so a shallow copy is a by-value snapshot
        return list(self.history)

    def restore(self, snapshot: List[Message]) -> None:
        self.history[:] = snapshot

    def products(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(p) for p in self.explicit_products.values()]


# ────────────────────────────────────────────────────────────
# Tools & model results
# ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    argument_schema: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    def to_api(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.argument_schema,
        }


@dataclass(frozen=True)
class ToolCallResult:
    texts: Tuple[str, ...] = ()
    is_error: bool = False

    @property
    def text(self) -> str:
        return "".join(self.texts)


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ModelResult:
    content: Tuple[ContentBlock, ...]
    stop_reason: Optional[str] = None

    @property
    def tool_uses(self) -> List[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def wants_tools(self) -> bool:
        return self.stop_reason == StopReason.TOOL_USE.value and bool(self.tool_uses)


@dataclass
class GroundingContext:
    explicit: List[Dict[str, Any]]
    retrieved: List[Dict[str, Any]]
    tools: List[ToolDefinition]
    system_prompt: str

    @property
    def is_empty(self) -> bool:
        return not self.explicit and not self.retrieved and not self.tools
