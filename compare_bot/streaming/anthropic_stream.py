from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Union

import anthropic  # type: ignore

from ..errors import ModelBackendError
from ..models import Message, ModelResult, TextDelta, ToolDefinition, block_from_api

log = logging.getLogger(__name__)

EMPTY_REPLY_PLACEHOLDER = "(no response)"


def _get(obj: Any, name: str) -> Any:
    value = getattr(obj, name, None)
    if value is None and isinstance(obj, dict):
        value = obj.get(name)
    return value


def _to_result(message: Any) -> ModelResult:
    blocks = [block_from_api(b) for b in (_get(message, "content") or [])]
    return ModelResult(
        content=tuple(b for b in blocks if b is not None),
        stop_reason=_get(message, "stop_reason"),
    )


class AnthropicStreamer:
    """
    Async wrapper for the Anthropic Messages API.
    - ``create`` returns one buffered ModelResult
    - ``stream`` yields TextDelta for each content_block_delta with type=text_delta,
      then the final ModelResult
    - SDK and transport errors surface as ModelBackendError
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        *,
        api_key: str = "",
        model: str = "claude-haiku-4-5-20251001",
        max_tokens: int = 1024,
        temperature: Optional[float] = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise RuntimeError("ANTHROPIC_API_KEY is not set")
            client = anthropic.AsyncAnthropic(api_key=api_key)
        self._client = client
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    @classmethod
    def from_config(cls, cfg) -> "AnthropicStreamer":
        return cls(
            api_key=cfg.ANTHROPIC_API_KEY,
            model=cfg.LLM_MODEL,
            max_tokens=cfg.LLM_MAX_TOKENS,
            temperature=cfg.LLM_TEMPERATURE,
        )

    def _request(
        self,
        system: str,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition],
    ) -> Dict[str, Any]:
        api_messages: List[Dict[str, Any]] = []
        for m in messages:
            api = m.to_api()
            if api["content"] == "":
                # Empty replies are kept in history but the API rejects empty content
                api["content"] = EMPTY_REPLY_PLACEHOLDER
            api_messages.append(api)

        req: Dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "system": system,
            "messages": api_messages,
        }
        if tools:
            req["tools"] = [t.to_api() for t in tools]
        if self._temperature is not None:
            req["temperature"] = self._temperature
        return req

    async def create(
        self,
        system: str,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition] = (),
    ) -> ModelResult:
        req = self._request(system, messages, tools)
        try:
            resp = await self._client.messages.create(**req)
        except anthropic.APIError as e:
            log.error(f"ANTHROPIC_CREATE_ERROR | {type(e).__name__}: {e}")
            raise ModelBackendError(str(e)) from e
        result = _to_result(resp)
        log.debug(f"ANTHROPIC_CREATE | stop={result.stop_reason} | blocks={len(result.content)}")
        return result

    async def stream(
        self,
        system: str,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition] = (),
    ) -> AsyncIterator[Union[TextDelta, ModelResult]]:
        req = self._request(system, messages, tools)
        try:
            async with self._client.messages.stream(**req) as stream:
                async for event in stream:
                    et = _get(event, "type")
                    log.debug(f"ANTHROPIC_EVT | type={et}")
                    if et != "content_block_delta":
                        continue
                    delta = _get(event, "delta")
                    if delta is not None and _get(delta, "type") == "text_delta":
                        text = _get(delta, "text")
                        if text:
                            yield TextDelta(text)
                final = await stream.get_final_message()
        except anthropic.APIError as e:
            log.error(f"ANTHROPIC_STREAM_ERROR | {type(e).__name__}: {e}")
            raise ModelBackendError(str(e)) from e
        yield _to_result(final)
