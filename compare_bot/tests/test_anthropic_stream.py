from __future__ import annotations

from types import SimpleNamespace

import anthropic
import httpx
import pytest

from compare_bot.errors import ModelBackendError
from compare_bot.models import Message, TextDelta, ToolUseBlock
from compare_bot.streaming.anthropic_stream import EMPTY_REPLY_PLACEHOLDER, AnthropicStreamer
from compare_bot.tests.fakes import ADD_TO_CART

FINAL = SimpleNamespace(
    stop_reason="tool_use",
    content=[
        SimpleNamespace(type="text", text="Adding it."),
        SimpleNamespace(type="tool_use", id="toolu_1", name="add_to_cart", input={"sku": "SKU-A"}),
    ],
)


def _delta(text):
    return SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text=text))


class _Stream:
    def __init__(self, events, final, error=None):
        self._events = events
        self._final = final
        self._error = error

    async def __aenter__(self):
        if self._error is not None:
            raise self._error
        return self

    async def __aexit__(self, *exc):
        return False

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for e in self._events:
            yield e

    async def get_final_message(self):
        return self._final


class _Messages:
    def __init__(self, events=(), final=FINAL, error=None):
        self.events = list(events)
        self.final = final
        self.error = error
        self.requests = []

    async def create(self, **req):
        self.requests.append(req)
        if self.error is not None:
            raise self.error
        return self.final

    def stream(self, **req):
        self.requests.append(req)
        return _Stream(self.events, self.final, self.error)


def _streamer(messages, **kwargs):
    return AnthropicStreamer(SimpleNamespace(messages=messages), model="test-model", max_tokens=256, **kwargs)


def _connection_error():
    return anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))


@pytest.mark.asyncio
async def test_create_maps_blocks_and_stop_reason():
    messages = _Messages()
    result = await _streamer(messages).create("sys", [Message.user_text("hi")], [ADD_TO_CART])

    assert result.stop_reason == "tool_use"
    assert result.text == "Adding it."
    assert result.tool_uses == [ToolUseBlock(id="toolu_1", name="add_to_cart", args={"sku": "SKU-A"})]
    assert result.wants_tools

    req = messages.requests[0]
    assert req["model"] == "test-model"
    assert req["max_tokens"] == 256
    assert req["system"] == "sys"
    assert req["messages"] == [{"role": "user", "content": "hi"}]
    assert req["tools"][0]["input_schema"] == ADD_TO_CART.argument_schema
    assert "temperature" not in req


@pytest.mark.asyncio
async def test_stream_yields_text_deltas_then_result():
    events = [
        SimpleNamespace(type="message_start"),
        _delta("Add"),
        SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="input_json_delta", partial_json="{")),
        _delta("ing it."),
        SimpleNamespace(type="message_stop"),
    ]
    out = [item async for item in _streamer(_Messages(events)).stream("sys", [Message.user_text("hi")])]

    assert out[:2] == [TextDelta("Add"), TextDelta("ing it.")]
    assert out[-1].stop_reason == "tool_use"
    assert len(out) == 3


@pytest.mark.asyncio
async def test_request_omits_empty_tools_and_fills_empty_replies():
    messages = _Messages()
    history = [Message.user_text("q"), Message.assistant_text(""), Message.user_text("again")]

    await _streamer(messages, temperature=0.2).create("sys", history, [])

    req = messages.requests[0]
    assert "tools" not in req
    assert req["temperature"] == 0.2
    assert req["messages"][1] == {"role": "assistant", "content": EMPTY_REPLY_PLACEHOLDER}


@pytest.mark.asyncio
async def test_api_errors_become_model_backend_errors():
    streamer = _streamer(_Messages(error=_connection_error()))

    with pytest.raises(ModelBackendError):
        await streamer.create("sys", [Message.user_text("hi")])

    with pytest.raises(ModelBackendError):
        async for _ in streamer.stream("sys", [Message.user_text("hi")]):
            pass


def test_missing_api_key_is_rejected():
    with pytest.raises(RuntimeError):
        AnthropicStreamer(api_key="")
