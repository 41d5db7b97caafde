"""
One-shot cancellation token shared by the record source and every worker.

The token is fired at most once. Observers either poll `cancelled` at their
own checkpoints or register a callback to be woken (the channel does this so a
blocked push can abort).
"""

from __future__ import annotations

import threading
from typing import Callable, List, Optional


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> bool:
        """Fire the token. Returns False if it had already fired."""
        with self._lock:
            if self._event.is_set():
                return False
            self.reason = reason
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            callback()
        return True

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Run `callback` when the token fires (immediately if it already has)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


__all__ = ["CancellationToken"]
