"""
Grounding for a turn: decides whether to consult the vector index, merges
retrieved products with the ones the user picked explicitly, and renders the
system prompt.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .models import GroundingContext, ToolDefinition
from .utils.helpers import normalize_sku

log = logging.getLogger(__name__)

# Multi-word on purpose: single words like "favorite" also appear in
# comparison questions ("which is your favorite camera?").
SKIP_RETRIEVAL_PHRASES = (
    # cart
    "add to cart",
    "add it to cart",
    "add to my cart",
    "to my cart",
    "from my cart",
    "from the cart",
    "my cart",
    "clear cart",
    "empty my cart",
    "sepete ekle",
    "sepetime ekle",
    "sepetten çıkar",
    "sepetten sil",
    "sepetimi",
    "sepetimde",
    "sepeti boşalt",
    "sepeti temizle",
    # favorites
    "add to favorites",
    "to my favorites",
    "from my favorites",
    "my favorites",
    "my wishlist",
    "favorilere ekle",
    "favorilerime ekle",
    "favorilerden çıkar",
    "favorilerden sil",
    "favorilerimi",
    "favorilerimde",
)


def should_skip_retrieval(text: str) -> bool:
    lowered = (text or "").lower()
    return any(phrase in lowered for phrase in SKIP_RETRIEVAL_PHRASES)


class ProductSearch(Protocol):
    def search(self, query: str, top_k: int, score_threshold: float) -> List[Dict[str, Any]]: ...


class RetrievalGate:
    """Best-effort semantic retrieval. Never fails a turn."""

    def __init__(self, search: Optional[ProductSearch], top_k: int = 15, score_threshold: float = 0.5):
        self.search = search
        self.top_k = top_k
        self.score_threshold = score_threshold

    async def retrieve(self, text: str) -> List[Dict[str, Any]]:
        if self.search is None:
            return []
        if should_skip_retrieval(text):
            log.info("RETRIEVAL_SKIPPED | reason=cart_or_favorites_intent")
            return []
        try:
            hits = await asyncio.to_thread(self.search.search, text, self.top_k, self.score_threshold)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning(f"RETRIEVAL_FAILED | error={type(e).__name__}: {e}")
            return []
        return list(hits or [])


def merge_context(explicit: Sequence[Dict[str, Any]], retrieved: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Retrieved products minus any the user already selected (case-insensitive SKU)."""
    chosen = {normalize_sku(p.get("sku", "")) for p in explicit}
    return [p for p in retrieved if normalize_sku(p.get("sku", "")) not in chosen]


# ────────────────────────────────────────────────────────────
# Prompt
# ────────────────────────────────────────────────────────────

ASSISTANT_RULES = """Your job:
- Compare products by their specifications
- Point out advantages and disadvantages
- Recommend based on what the user needs
- Assess price/performance
- Answer in the user's language (Turkish by default)
- Keep answers short and to the point
- Only state facts that appear in the product data above; never invent specs or prices"""


def _dump(products: Sequence[Dict[str, Any]]) -> str:
    return json.dumps(list(products), ensure_ascii=False, indent=2)


def _tool_directives(session_id: str) -> str:
    return f"""Tools:
- You can manage the user's cart and favorites with the provided tools.
- Always pass userId="{session_id}" to every tool call.
- When adding to the cart, use quantity 1 unless the user asks for another amount.
- Always tell the user the outcome of each tool call in plain language, whether it succeeded or failed."""


def build_prompt(
    explicit: Sequence[Dict[str, Any]],
    retrieved: Sequence[Dict[str, Any]],
    session_id: str,
    tools_available: bool,
) -> str:
    header = "You are a product comparison assistant helping the user compare products."

    if explicit and retrieved:
        context = (
            "The user selected these products for comparison:\n\n"
            f"{_dump(explicit)}\n\n"
            "These other catalog products may also be relevant to the question. "
            "Focus on the selected products and mention the others only when they help:\n\n"
            f"{_dump(retrieved)}"
        )
    elif explicit:
        context = f"The user selected these products for comparison:\n\n{_dump(explicit)}"
    elif retrieved:
        context = (
            "The user has not selected any products. These catalog products matched "
            "the question; base your answer on them:\n\n"
            f"{_dump(retrieved)}"
        )
    else:
        context = (
            "No product details are available for this question. Do not guess at "
            "products or specs; help with what the tools can do and say so when you cannot."
        )

    sections = [header, context, ASSISTANT_RULES]
    if tools_available:
        sections.append(_tool_directives(session_id))
    return "\n\n".join(sections)


class ContextAssembler:
    def __init__(self, gate: RetrievalGate):
        self.gate = gate

    async def ground(
        self,
        session_id: str,
        text: str,
        explicit: List[Dict[str, Any]],
        tools: List[ToolDefinition],
    ) -> GroundingContext:
        retrieved = merge_context(explicit, await self.gate.retrieve(text))
        return GroundingContext(
            explicit=explicit,
            retrieved=retrieved,
            tools=tools,
            system_prompt=build_prompt(explicit, retrieved, session_id, bool(tools)),
        )
