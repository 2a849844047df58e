from __future__ import annotations

import json

import pytest

from compare_bot.context_builder import (
    ContextAssembler,
    RetrievalGate,
    build_prompt,
    merge_context,
    should_skip_retrieval,
)
from compare_bot.tests.fakes import ADD_TO_CART, FakeSearch

IPHONE = {"sku": "SKU-IP15", "name": "iPhone 15 Pro", "price": 49999}
PIXEL = {"sku": "SKU-P9", "name": "Google Pixel 9 Pro", "price": 39999}


@pytest.mark.parametrize(
    "text,skip",
    [
        ("Please add to cart the iPhone", True),
        ("What's in MY CART right now?", True),
        ("iPhone'u sepete ekle", True),
        ("favorilerime ekle lütfen", True),
        ("Remove it from my favorites", True),
        ("Which phone has the better camera?", False),
        ("Which is your favorite laptop for coding?", False),
        ("Hangisi daha hafif?", False),
    ],
)
def test_should_skip_retrieval(text, skip):
    assert should_skip_retrieval(text) is skip


def test_merge_context_drops_explicit_skus_case_insensitively():
    retrieved = [{"sku": "sku-ip15", "name": "dup"}, PIXEL]
    assert merge_context([IPHONE], retrieved) == [PIXEL]


def test_build_prompt_renderings_are_distinct():
    explicit_only = build_prompt([IPHONE], [], "s1", False)
    retrieved_only = build_prompt([], [PIXEL], "s1", False)
    both = build_prompt([IPHONE], [PIXEL], "s1", False)
    neither = build_prompt([], [], "s1", True)

    assert len({explicit_only, retrieved_only, both, neither}) == 4
    assert "iPhone 15 Pro" in explicit_only and "Pixel" not in explicit_only
    assert "Pixel" in retrieved_only and "iPhone" not in retrieved_only
    assert "iPhone 15 Pro" in both and "Pixel" in both
    assert "No product details" in neither


def test_build_prompt_embeds_products_as_json():
    prompt = build_prompt([IPHONE], [], "s1", False)
    assert json.dumps([IPHONE], ensure_ascii=False, indent=2) in prompt


def test_tool_directives_only_when_tools_available():
    with_tools = build_prompt([IPHONE], [], "sess-42", True)
    without = build_prompt([IPHONE], [], "sess-42", False)

    assert 'userId="sess-42"' in with_tools
    assert "quantity 1" in with_tools
    assert "outcome" in with_tools
    assert "sess-42" not in without


@pytest.mark.asyncio
async def test_retrieval_gate_passes_limits_and_returns_hits():
    search = FakeSearch(hits=[PIXEL])
    gate = RetrievalGate(search, top_k=15, score_threshold=0.5)

    assert await gate.retrieve("light phone with good camera") == [PIXEL]
    assert search.calls == [("light phone with good camera", 15, 0.5)]


@pytest.mark.asyncio
async def test_retrieval_gate_skips_cart_intents():
    search = FakeSearch(hits=[PIXEL])
    gate = RetrievalGate(search)

    assert await gate.retrieve("add to cart the pixel") == []
    assert search.calls == []


@pytest.mark.asyncio
async def test_retrieval_failures_are_treated_as_no_results():
    gate = RetrievalGate(FakeSearch(error=ConnectionError("index offline")))
    assert await gate.retrieve("best laptop") == []


@pytest.mark.asyncio
async def test_retrieval_gate_without_search_returns_nothing():
    assert await RetrievalGate(None).retrieve("best laptop") == []


@pytest.mark.asyncio
async def test_ground_merges_and_renders():
    assembler = ContextAssembler(RetrievalGate(FakeSearch(hits=[IPHONE, PIXEL])))

    ctx = await assembler.ground("s1", "compare phones", [IPHONE], [ADD_TO_CART])

    assert ctx.explicit == [IPHONE]
    assert ctx.retrieved == [PIXEL]
    assert ctx.tools == [ADD_TO_CART]
    assert 'userId="s1"' in ctx.system_prompt
    assert not ctx.is_empty
