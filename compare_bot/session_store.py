"""
In-memory session store.

Owns every Session, the per-session turn locks and the background sweep that
evicts idle sessions. Map mutations are guarded by a threading lock because
HTTP threads call ``ensure``/``add_products`` directly while turns run on the
engine loop.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional

from .errors import SessionNotFound
from .models import Session
from .utils.helpers import normalize_sku

log = logging.getLogger(__name__)


class SessionStore:
    def __init__(
        self,
        ttl_seconds: float = 1800,
        sweep_interval_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._turn_locks: Dict[str, asyncio.Lock] = {}
        self._mutex = threading.RLock()
        self._sweeper: Optional[asyncio.Task] = None

    # ────────────────────────────────────────────────────────────
    # CRUD
    # ────────────────────────────────────────────────────────────

    def ensure(self, session_id: str) -> Session:
        with self._mutex:
            session = self._sessions.get(session_id)
            if session is None:
                session = Session(id=session_id, last_activity_at=self._clock())
                self._sessions[session_id] = session
                log.info(f"SESSION_CREATED | session={session_id}")
            else:
                session.last_activity_at = self._clock()
            return session

    def add_products(self, session_id: str, products: Iterable[Dict[str, Any]]) -> List[str]:
        """Merge product records by upper-cased SKU; records marked ``error`` are skipped."""
        accepted: List[str] = []
        with self._mutex:
            session = self.ensure(session_id)
            for product in products:
                if not product or product.get("error") or not product.get("sku"):
                    continue
                sku = normalize_sku(product["sku"])
                session.explicit_products[sku] = dict(product)
                accepted.append(sku)
        if accepted:
            log.info(f"SESSION_PRODUCTS | session={session_id} | added={accepted}")
        return accepted

    def exists(self, session_id: str) -> bool:
        with self._mutex:
            return session_id in self._sessions

    def get(self, session_id: str) -> Session:
        with self._mutex:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def products_for(self, session_id: str) -> List[Dict[str, Any]]:
        with self._mutex:
            return self.get(session_id).products()

    def reset(self, session_id: str) -> bool:
        with self._mutex:
            removed = self._sessions.pop(session_id, None) is not None
            lock = self._turn_locks.get(session_id)
            if lock is not None and not lock.locked():
                self._turn_locks.pop(session_id, None)
        if removed:
            log.info(f"SESSION_RESET | session={session_id}")
        return removed

    def is_live(self, session: Session) -> bool:
        with self._mutex:
            return self._sessions.get(session.id) is session

    def stats(self) -> Dict[str, Any]:
        with self._mutex:
            return {
                "sessions": len(self._sessions),
                "active_turns": sum(1 for l in self._turn_locks.values() if l.locked()),
            }

    def __len__(self) -> int:
        with self._mutex:
            return len(self._sessions)

    # ────────────────────────────────────────────────────────────
    # Turn serialization
    # ────────────────────────────────────────────────────────────

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        with self._mutex:
            lock = self._turn_locks.get(session_id)
            if lock is None:
                lock = asyncio.Lock()
                self._turn_locks[session_id] = lock
            return lock

    @asynccontextmanager
    async def checkout(self, session_id: str) -> AsyncIterator[Session]:
        """
        Hold the session's turn lock for the duration of the block.

        Raises SessionNotFound if the session is absent, or was swept or reset
        while this caller waited for the lock.
        """
        if not self.exists(session_id):
            raise SessionNotFound(session_id)
        lock = self._lock_for(session_id)
        async with lock:
            with self._mutex:
                session = self._sessions.get(session_id)
                if session is None:
                    raise SessionNotFound(session_id)
                session.last_activity_at = self._clock()
            yield session

    # ────────────────────────────────────────────────────────────
    # Expiry
    # ────────────────────────────────────────────────────────────

    def sweep(self) -> List[str]:
        """Evict sessions idle longer than the TTL. Sessions mid-turn are skipped."""
        now = self._clock()
        evicted: List[str] = []
        with self._mutex:
            for session_id, session in list(self._sessions.items()):
                if now - session.last_activity_at <= self.ttl_seconds:
                    continue
                lock = self._turn_locks.get(session_id)
                if lock is not None and lock.locked():
                    continue
                del self._sessions[session_id]
                self._turn_locks.pop(session_id, None)
                evicted.append(session_id)
        if evicted:
            log.info(f"SESSION_SWEEP | evicted={len(evicted)} | remaining={len(self)}")
        return evicted

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                self.sweep()
            except Exception as e:
                log.exception(f"SESSION_SWEEP_FAILED | error={e}")

    def start_sweeper(self) -> asyncio.Task:
        """Schedule the sweep on the running loop. Idempotent."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())
            log.info(f"SESSION_SWEEPER_STARTED | every={self.sweep_interval_seconds}s | ttl={self.ttl_seconds}s")
        return self._sweeper

    async def stop_sweeper(self) -> None:
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
