from __future__ import annotations

import threading

from ..errors import CancellationSignaled


class CancelToken:
    """
    Cooperative cancellation flag shared between an HTTP thread and a turn
    running on the engine loop.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationSignaled("turn cancelled by caller")
