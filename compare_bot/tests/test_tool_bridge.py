from __future__ import annotations

import asyncio

import pytest

from compare_bot.enums import ToolCacheState
from compare_bot.models import ToolCallResult
from compare_bot.tool_bridge import ToolBridge
from compare_bot.tests.fakes import ADD_TO_CART, FakeClock, FakeExecutor


@pytest.mark.asyncio
async def test_concurrent_first_callers_share_one_fetch():
    executor = FakeExecutor()
    bridge = ToolBridge(executor)

    results = await asyncio.gather(*(bridge.get_tool_definitions() for _ in range(5)))

    assert executor.list_calls == 1
    assert all(r == [ADD_TO_CART] for r in results)
    assert bridge.state == ToolCacheState.READY

    await bridge.get_tool_definitions()
    assert executor.list_calls == 1


@pytest.mark.asyncio
async def test_empty_list_is_cached_as_ready():
    executor = FakeExecutor(tools=[])
    bridge = ToolBridge(executor)

    assert await bridge.get_tool_definitions() == []
    assert await bridge.get_tool_definitions() == []
    assert executor.list_calls == 1
    assert bridge.state == ToolCacheState.READY


@pytest.mark.asyncio
async def test_failed_fetch_is_retried_after_cooldown():
    clock = FakeClock()
    executor = FakeExecutor(list_error=ConnectionError("spawn failed"))
    bridge = ToolBridge(executor, retry_after_seconds=60, clock=clock)

    assert await bridge.get_tool_definitions() == []
    assert bridge.state == ToolCacheState.FAILED

    clock.now += 30
    await bridge.get_tool_definitions()
    assert executor.list_calls == 1

    executor.list_error = None
    clock.now += 31
    assert await bridge.get_tool_definitions() == [ADD_TO_CART]
    assert executor.list_calls == 2
    assert bridge.state == ToolCacheState.READY


@pytest.mark.asyncio
async def test_reset_cache_forces_refetch():
    executor = FakeExecutor()
    bridge = ToolBridge(executor)
    await bridge.get_tool_definitions()

    bridge.reset_cache()
    assert bridge.state == ToolCacheState.UNFETCHED
    await bridge.get_tool_definitions()

    assert executor.list_calls == 2


@pytest.mark.asyncio
async def test_invoke_concatenates_text_parts():
    executor = FakeExecutor(results={"add_to_cart": ToolCallResult(texts=("added ", "SKU-A"))})
    bridge = ToolBridge(executor)

    block = await bridge.invoke("add_to_cart", {"sku": "SKU-A"}, tool_use_id="t1")

    assert block.tool_use_id == "t1"
    assert block.text == "added SKU-A"
    assert block.is_error is False
    assert executor.calls == [("add_to_cart", {"sku": "SKU-A"})]


@pytest.mark.asyncio
async def test_invoke_turns_exception_into_error_result():
    executor = FakeExecutor(results={"add_to_cart": RuntimeError("cart service down")})
    bridge = ToolBridge(executor)

    block = await bridge.invoke("add_to_cart", {}, tool_use_id="t1")

    assert block.is_error is True
    assert block.text == "Tool error: cart service down"


@pytest.mark.asyncio
async def test_invoke_flags_error_results_from_executor():
    executor = FakeExecutor(results={"add_to_cart": ToolCallResult(texts=("product not found",), is_error=True)})
    bridge = ToolBridge(executor)

    block = await bridge.invoke("add_to_cart", {}, tool_use_id="t9")

    assert block.is_error is True
    assert "product not found" in block.text
    assert block.text.startswith("Tool error:")


@pytest.mark.asyncio
async def test_invoke_does_not_swallow_cancellation():
    executor = FakeExecutor(results={"add_to_cart": asyncio.CancelledError()})
    bridge = ToolBridge(executor)

    with pytest.raises(asyncio.CancelledError):
        await bridge.invoke("add_to_cart", {}, tool_use_id="t1")
