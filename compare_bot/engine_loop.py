"""
One long-lived asyncio loop on a daemon thread.

Flask request threads hand coroutines to it; every turn, the per-session locks,
the tool-definition fetch and the session sweeper all live on this loop.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable, Coroutine, Optional, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


class EngineLoop:
    def __init__(self, name: str = "compare-bot-engine") -> None:
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError("engine loop is not running")
        return self._loop

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "EngineLoop":
        if self.running:
            return self

        def _run() -> None:
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            self._loop = loop
            self._ready.set()
            try:
                loop.run_forever()
            finally:
                loop.run_until_complete(loop.shutdown_asyncgens())
                loop.close()

        self._ready.clear()
        self._thread = threading.Thread(target=_run, name=self.name, daemon=True)
        self._thread.start()
        self._ready.wait()
        log.info(f"ENGINE_LOOP_STARTED | thread={self.name}")
        return self

    def submit(self, coro: Coroutine[Any, Any, T]) -> "concurrent.futures.Future[T]":
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def run(self, coro: Coroutine[Any, Any, T], timeout: Optional[float] = None) -> T:
        """Run ``coro`` on the engine loop and block the calling thread for its result."""
        future = self.submit(coro)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    def stop(self, shutdown: Optional[Callable[[], Awaitable[None]]] = None, timeout: float = 5.0) -> None:
        if not self.running:
            return
        if shutdown is not None:
            try:
                self.run(shutdown(), timeout=timeout)
            except Exception as e:
                log.warning(f"ENGINE_SHUTDOWN_HOOK_FAILED | error={e}")
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=timeout)
        self._thread = None
        self._loop = None
        log.info(f"ENGINE_LOOP_STOPPED | thread={self.name}")
