"""
Tool bridge: caches tool definitions from the executor and turns every tool
invocation into a tool_result block. ``invoke`` never raises except for
cancellation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

from .enums import ToolCacheState
from .models import ToolCallResult, ToolDefinition, ToolResultBlock

log = logging.getLogger(__name__)


class ToolExecutor(Protocol):
    async def list_tools(self) -> List[ToolDefinition]: ...

    async def call_tool(self, name: str, args: Dict[str, Any]) -> ToolCallResult: ...


class ToolBridge:
    def __init__(
        self,
        executor: ToolExecutor,
        retry_after_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.executor = executor
        self.retry_after_seconds = retry_after_seconds
        self._clock = clock
        self._tools: List[ToolDefinition] = []
        self._state = ToolCacheState.UNFETCHED
        self._failed_at: Optional[float] = None
        self._inflight: Optional[asyncio.Future] = None

    @property
    def state(self) -> ToolCacheState:
        return self._state

    def _needs_fetch(self) -> bool:
        if self._state == ToolCacheState.UNFETCHED:
            return True
        if self._state == ToolCacheState.FAILED:
            return self._clock() - (self._failed_at or 0.0) >= self.retry_after_seconds
        return False

    async def get_tool_definitions(self) -> List[ToolDefinition]:
        """
        Cached tool list. The first caller triggers the fetch and concurrent
        callers await the same in-flight future.
        """
        if not self._needs_fetch():
            return list(self._tools)
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._fetch())
        await asyncio.shield(self._inflight)
        return list(self._tools)

    async def _fetch(self) -> None:
        try:
            tools = list(await self.executor.list_tools())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._tools = []
            self._state = ToolCacheState.FAILED
            self._failed_at = self._clock()
            log.warning(
                f"TOOLS_FETCH_FAILED | error={type(e).__name__}: {e} | retry_in={self.retry_after_seconds}s"
            )
            return

        self._tools = tools
        self._state = ToolCacheState.READY
        self._failed_at = None
        if tools:
            log.info(f"TOOLS_READY | count={len(tools)} | names={[t.name for t in tools]}")
        else:
            # Cached for the process lifetime; executors that hide their own
            # connection errors land here too.
            log.warning("TOOLS_READY_EMPTY | executor returned no tools")

    def reset_cache(self) -> None:
        self._tools = []
        self._state = ToolCacheState.UNFETCHED
        self._failed_at = None
        self._inflight = None

    async def invoke(self, name: str, args: Dict[str, Any], *, tool_use_id: str) -> ToolResultBlock:
        t0 = time.perf_counter()
        try:
            result = await self.executor.call_tool(name, dict(args or {}))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning(f"TOOL_CALL_FAILED | tool={name} | error={type(e).__name__}: {e}")
            return ToolResultBlock(tool_use_id=tool_use_id, text=f"Tool error: {e}", is_error=True)

        elapsed_ms = int((time.perf_counter() - t0) * 1000)
        if result.is_error:
            log.warning(f"TOOL_CALL_ERROR_RESULT | tool={name} | ms={elapsed_ms}")
            return ToolResultBlock(tool_use_id=tool_use_id, text=f"Tool error: {result.text}", is_error=True)

        log.info(f"TOOL_CALL_OK | tool={name} | ms={elapsed_ms} | chars={len(result.text)}")
        return ToolResultBlock(tool_use_id=tool_use_id, text=result.text)
