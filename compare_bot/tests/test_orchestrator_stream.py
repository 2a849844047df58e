from __future__ import annotations

import asyncio

import pytest

from compare_bot.context_builder import ContextAssembler, RetrievalGate
from compare_bot.enums import StreamEvent
from compare_bot.errors import ModelBackendError
from compare_bot.models import Message, ToolUseBlock
from compare_bot.orchestrator import NO_CONTEXT_MESSAGE, TurnOrchestrator
from compare_bot.session_store import SessionStore
from compare_bot.tool_bridge import ToolBridge
from compare_bot.utils.cancel import CancelToken
from compare_bot.tests.fakes import FakeExecutor, FakeModel, FakeSearch, text_result, tool_result

SKU_A = {"sku": "SKU-A", "name": "Product A", "price": 100}
USE = ToolUseBlock(id="t1", name="add_to_cart", args={"userId": "s1", "sku": "SKU-A"})


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, event, data):
        self.events.append((event, data))

    def kinds(self):
        return [e for e, _ in self.events]

    def text(self):
        return "".join(d["text"] for e, d in self.events if e == StreamEvent.DELTA)


def build(model, executor=None, search=None):
    store = SessionStore()
    bridge = ToolBridge(executor if executor is not None else FakeExecutor())
    orch = TurnOrchestrator(store, bridge, model, ContextAssembler(RetrievalGate(search)))
    store.add_products("s1", [SKU_A])
    return orch, store


@pytest.mark.asyncio
async def test_deltas_cover_every_round_but_commit_only_last():
    model = FakeModel([tool_result(USE, text="Let me add that. "), text_result("Done, Product A is in your cart.")])
    orch, store = build(model)
    sink = Recorder()

    await orch.run_turn_streaming("s1", "add product A", sink)

    assert sink.text() == "Let me add that. Done, Product A is in your cart."
    assert store.get("s1").history[-1] == Message.assistant_text("Done, Product A is in your cart.")
    assert all(call["mode"] == "stream" for call in model.calls)


@pytest.mark.asyncio
async def test_tool_events_bracket_invocation_and_done_is_last():
    orch, store = build(FakeModel([tool_result(USE), text_result("ok")]))
    sink = Recorder()

    await orch.run_turn_streaming("s1", "add it", sink)

    kinds = [k for k in sink.kinds() if k != StreamEvent.DELTA]
    assert kinds == [StreamEvent.TOOL_START, StreamEvent.TOOL_END, StreamEvent.DONE]
    start = next(d for e, d in sink.events if e == StreamEvent.TOOL_START)
    assert start == {"tool": "add_to_cart", "round": 1}
    assert sink.events[-1] == (StreamEvent.DONE, {"sessionId": "s1"})


@pytest.mark.asyncio
async def test_model_error_is_reported_and_turn_rolled_back():
    orch, store = build(FakeModel([ModelBackendError("upstream 529")]))
    sink = Recorder()

    await orch.run_turn_streaming("s1", "compare", sink)

    assert sink.events == [(StreamEvent.ERROR, {"message": "upstream 529", "code": "MODEL_BACKEND_ERROR"})]
    assert store.get("s1").history == []


@pytest.mark.asyncio
async def test_unexpected_error_is_masked():
    orch, store = build(FakeModel([RuntimeError("boom")]))
    sink = Recorder()

    await orch.run_turn_streaming("s1", "compare", sink)

    assert sink.events == [(StreamEvent.ERROR, {"message": "An error occurred", "code": "INTERNAL_ERROR"})]
    assert store.get("s1").history == []


@pytest.mark.asyncio
async def test_missing_session_reports_not_found():
    orch, _ = build(FakeModel())
    sink = Recorder()

    await orch.run_turn_streaming("ghost", "hello", sink)

    assert len(sink.events) == 1
    event, data = sink.events[0]
    assert event == StreamEvent.ERROR
    assert data["code"] == "SESSION_NOT_FOUND"


@pytest.mark.asyncio
async def test_cancel_during_tool_call_stops_events_and_rolls_back():
    executor = FakeExecutor()
    orch, store = build(FakeModel([tool_result(USE), text_result("never sent")]), executor)
    token = CancelToken()
    executor.on_call = lambda name, args: token.cancel()
    sink = Recorder()

    await orch.run_turn_streaming("s1", "add it", sink, cancel_token=token)

    assert sink.kinds() == [StreamEvent.TOOL_START]
    assert store.get("s1").history == []
    assert len(orch.model.calls) == 1


@pytest.mark.asyncio
async def test_cancelled_token_suppresses_deltas():
    orch, store = build(FakeModel([text_result("a fairly long answer")]))
    token = CancelToken()
    token.cancel()
    sink = Recorder()

    await orch.run_turn_streaming("s1", "hi", sink, cancel_token=token)

    assert sink.events == []
    assert store.get("s1").history == []


@pytest.mark.asyncio
async def test_cancelled_token_suppresses_no_context_message():
    store = SessionStore()
    store.ensure("s2")
    orch = TurnOrchestrator(store, ToolBridge(FakeExecutor(tools=[])), FakeModel(), ContextAssembler(RetrievalGate(None)))
    token = CancelToken()
    token.cancel()
    sink = Recorder()

    await orch.run_turn_streaming("s2", "anything good?", sink, cancel_token=token)

    assert sink.events == []
    assert store.get("s2").history == []


@pytest.mark.asyncio
async def test_async_sink_is_awaited():
    orch, _ = build(FakeModel([text_result("hello there")]))
    seen = []

    async def sink(event, data):
        await asyncio.sleep(0)
        seen.append(event)

    await orch.run_turn_streaming("s1", "hi", sink)

    assert seen[0] == StreamEvent.DELTA
    assert seen[-1] == StreamEvent.DONE


@pytest.mark.asyncio
async def test_empty_context_streams_fixed_message_then_done():
    store = SessionStore()
    store.ensure("s2")
    model = FakeModel()
    orch = TurnOrchestrator(
        store, ToolBridge(FakeExecutor(tools=[])), model, ContextAssembler(RetrievalGate(FakeSearch()))
    )
    sink = Recorder()

    await orch.run_turn_streaming("s2", "anything good?", sink)

    assert sink.events == [
        (StreamEvent.DELTA, {"text": NO_CONTEXT_MESSAGE}),
        (StreamEvent.DONE, {"sessionId": "s2"}),
    ]
    assert model.calls == []
    assert store.get("s2").history == []
