"""
Turn orchestrator.

Drives one user turn end to end: ground the question, call the model, run any
requested tools, loop until the model answers in text or the tool budget runs
out, then commit the reply to the session. A turn either commits
(user message, tool rounds, final assistant message) or rolls the session
history back to exactly what it was before the turn started.

Streaming turns report progress through a sink callable ``sink(event, data)``
that may be sync or async.
"""

from __future__ import annotations

import inspect
import logging
import time
from contextlib import aclosing
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from .context_builder import ContextAssembler
from .enums import StreamEvent, TurnState
from .errors import CancellationSignaled, CompareBotError, ModelBackendError
from .models import GroundingContext, Message, ModelResult, Session, TextDelta, ToolResultBlock
from .session_store import SessionStore
from .tool_bridge import ToolBridge
from .utils.cancel import CancelToken
from .utils.helpers import trim_history
from .utils.smart_logger import get_turn_logger

log = logging.getLogger(__name__)

NO_CONTEXT_MESSAGE = (
    "I couldn't find any products matching your question. "
    "Please select the products you'd like to compare, or describe what you're looking for in more detail."
)

Sink = Callable[[StreamEvent, Dict[str, Any]], Union[None, Awaitable[None]]]


class TurnOrchestrator:
    def __init__(
        self,
        store: SessionStore,
        bridge: ToolBridge,
        model: Any,
        assembler: ContextAssembler,
        *,
        max_rounds: int = 5,
        max_history: int = 20,
    ) -> None:
        self.store = store
        self.bridge = bridge
        self.model = model
        self.assembler = assembler
        if max_history < 2:
            raise ValueError(f"max_history must be at least 2 (user message + reply), got {max_history}")
        self.max_rounds = max_rounds
        self.max_history = max_history
        self.tlog = get_turn_logger(__name__)

    # ────────────────────────────────────────────────────────────
    # Public entry points
    # ────────────────────────────────────────────────────────────

    async def run_turn(self, session_id: str, text: str) -> str:
        """Run a buffered turn and return the final reply text."""
        async with self.store.checkout(session_id) as session:
            self.tlog.turn_start(session_id, text, streaming=False)
            return await self._run(session, text, sink=None, cancel=None)

    async def run_turn_streaming(
        self,
        session_id: str,
        text: str,
        sink: Sink,
        cancel_token: Optional[CancelToken] = None,
    ) -> None:
        """
        Run a turn, delivering delta / tool_start / tool_end / done / error
        events to ``sink``. Errors are reported through the sink, not raised.
        A cancelled turn is rolled back and emits nothing further.
        """
        try:
            async with self.store.checkout(session_id) as session:
                self.tlog.turn_start(session_id, text, streaming=True)
                await self._run(session, text, sink=sink, cancel=cancel_token)
        except CancellationSignaled:
            log.info(f"TURN_CANCELLED | session={session_id}")
            return
        except CompareBotError as e:
            self.tlog.error_occurred(session_id, type(e).__name__, "run_turn_streaming", str(e))
            if cancel_token is not None and cancel_token.cancelled:
                return
            await self._emit(sink, StreamEvent.ERROR, {"message": str(e), "code": e.code})
            return
        except Exception as e:
            log.exception(f"TURN_UNEXPECTED_ERROR | session={session_id} | error={e}")
            if cancel_token is not None and cancel_token.cancelled:
                return
            await self._emit(sink, StreamEvent.ERROR, {"message": "An error occurred", "code": "INTERNAL_ERROR"})
            return

        if cancel_token is not None and cancel_token.cancelled:
            return
        await self._emit(sink, StreamEvent.DONE, {"sessionId": session_id})

    # ────────────────────────────────────────────────────────────
    # Turn body
    # ────────────────────────────────────────────────────────────

    async def _run(
        self,
        session: Session,
        text: str,
        *,
        sink: Optional[Sink],
        cancel: Optional[CancelToken],
    ) -> str:
        t0 = time.perf_counter()
        snapshot = session.snapshot()

        session.history.append(Message.user_text(text))
        # One slot is reserved for the assistant reply this turn commits
        dropped = trim_history(session.history, self.max_history - 1, lambda m: m.is_plain_user_text)
        if dropped:
            log.info(f"HISTORY_TRIMMED | session={session.id} | dropped={dropped} | kept={len(session.history)}")

        rounds = 0
        try:
            self.tlog.state(session.id, TurnState.GROUNDING)
            tools = await self.bridge.get_tool_definitions()
            grounding = await self.assembler.ground(session.id, text, session.products(), tools)
            self.tlog.grounding(session.id, len(grounding.explicit), len(grounding.retrieved), len(tools))

            if grounding.is_empty:
                self._check(cancel)
                session.restore(snapshot)
                self.tlog.state(session.id, TurnState.ROLLED_BACK, reason="no_context")
                self.tlog.rolled_back(session.id, "no grounding context and no tools")
                await self._emit(sink, StreamEvent.DELTA, {"text": NO_CONTEXT_MESSAGE})
                return NO_CONTEXT_MESSAGE

            final_text = ""
            while True:
                self._check(cancel)
                self.tlog.state(session.id, TurnState.MODEL_CALL, round=rounds + 1)
                result, final_text = await self._call_model(grounding, session.history, sink, cancel)

                if not result.wants_tools:
                    break
                if rounds >= self.max_rounds:
                    self.tlog.round_budget_exhausted(session.id, rounds)
                    break

                rounds += 1
                self.tlog.state(session.id, TurnState.TOOL_ROUND, round=rounds, tools=len(result.tool_uses))
                session.history.append(Message.assistant_blocks(list(result.content)))
                session.history.append(Message.tool_results(await self._dispatch(session.id, result, rounds, sink, cancel)))

            self.tlog.state(session.id, TurnState.FINALIZING)
            session.history.append(Message.assistant_text(final_text))
        except BaseException as e:
            session.restore(snapshot)
            self.tlog.state(session.id, TurnState.ROLLED_BACK, error=type(e).__name__)
            self.tlog.rolled_back(session.id, f"{type(e).__name__}: {e}")
            raise

        if not self.store.is_live(session):
            log.warning(f"SESSION_GONE_DURING_TURN | session={session.id}")
        self.tlog.state(session.id, TurnState.COMMITTED)
        self.tlog.committed(session.id, rounds, len(final_text), time.perf_counter() - t0)
        return final_text

    async def _call_model(
        self,
        grounding: GroundingContext,
        history: List[Message],
        sink: Optional[Sink],
        cancel: Optional[CancelToken],
    ) -> Tuple[ModelResult, str]:
        messages = list(history)
        if sink is None:
            result = await self.model.create(grounding.system_prompt, messages, grounding.tools)
            return result, result.text

        # Final text is what streamed in this round only
        buffer: List[str] = []
        result: Optional[ModelResult] = None
        async with aclosing(self.model.stream(grounding.system_prompt, messages, grounding.tools)) as events:
            async for item in events:
                if isinstance(item, TextDelta):
                    self._check(cancel)
                    buffer.append(item.text)
                    await self._emit(sink, StreamEvent.DELTA, {"text": item.text})
                elif isinstance(item, ModelResult):
                    result = item
        if result is None:
            raise ModelBackendError("model stream ended without a final message")
        return result, "".join(buffer)

    async def _dispatch(
        self,
        session_id: str,
        result: ModelResult,
        round_no: int,
        sink: Optional[Sink],
        cancel: Optional[CancelToken],
    ) -> List[ToolResultBlock]:
        blocks: List[ToolResultBlock] = []
        for use in result.tool_uses:
            self._check(cancel)
            self.tlog.tool_dispatch(session_id, use.name, round_no)
            await self._emit(sink, StreamEvent.TOOL_START, {"tool": use.name, "round": round_no})
            block = await self.bridge.invoke(use.name, use.args, tool_use_id=use.id)
            self._check(cancel)
            self.tlog.tool_dispatch(session_id, use.name, round_no, is_error=block.is_error)
            await self._emit(sink, StreamEvent.TOOL_END, {"tool": use.name, "round": round_no})
            blocks.append(block)
        return blocks

    # ────────────────────────────────────────────────────────────
    # Helpers
    # ────────────────────────────────────────────────────────────

    @staticmethod
    def _check(cancel: Optional[CancelToken]) -> None:
        if cancel is not None:
            cancel.raise_if_cancelled()

    @staticmethod
    async def _emit(sink: Optional[Sink], event: StreamEvent, data: Dict[str, Any]) -> None:
        if sink is None:
            return
        res = sink(event, data)
        if inspect.isawaitable(res):
            await res
