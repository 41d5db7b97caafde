"""
Bounded hand-off channel between the record source and the workers.

Capacity equals the worker count so a full pool can always be kept busy
without unbounded buffering. `put` blocks while the channel is full
(backpressure on the source); `get` blocks while it is empty and open, and
gives up early once the cancellation token fires. Closing wakes every waiter:
workers drain what is left and then see end-of-stream.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Generic, Iterator, Optional, TypeVar

from pload.domain.errors import IngestCancelled
from pload.pipeline.cancellation import CancellationToken

T = TypeVar("T")


class ChannelClosed(Exception):
    """Raised by `put` on a closed channel."""


class RecordChannel(Generic[T]):
    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("channel capacity must be >= 1")
        self.capacity = capacity
        self._items: Deque[T] = deque()
        self._closed = False
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def wake(self) -> None:
        """Wake all blocked callers so they re-check their conditions."""
        with self._cond:
            self._cond.notify_all()

    def put(self, item: T, cancel: Optional[CancellationToken] = None) -> None:
        """
        Push one item, blocking while the channel is full.

        Raises
        ------
        IngestCancelled
            If `cancel` fires before the item could be enqueued; the item is dropped.
        ChannelClosed
            If the channel was closed.
        """
        with self._cond:
            while True:
                if cancel is not None and cancel.cancelled:
                    raise IngestCancelled(cancel.reason or "cancelled")
                if self._closed:
                    raise ChannelClosed()
                if len(self._items) < self.capacity:
                    self._items.append(item)
                    self._cond.notify_all()
                    return
                self._cond.wait()

    def get(self, cancel: Optional[CancellationToken] = None) -> Optional[T]:
        """
        Pop one item, blocking while empty.

        Returns None once closed and drained, or as soon as `cancel` fires;
        items still queued at that point are left in the channel.
        """
        with self._cond:
            while not self._items:
                if self._closed or (cancel is not None and cancel.cancelled):
                    return None
                self._cond.wait()
            if cancel is not None and cancel.cancelled:
                return None
            item = self._items.popleft()
            self._cond.notify_all()
            return item

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def drain(self, cancel: Optional[CancellationToken] = None) -> Iterator[T]:
        """Yield items until the channel is closed and empty, or `cancel` fires."""
        while True:
            item = self.get(cancel)
            if item is None:
                return
            yield item

    def __iter__(self) -> Iterator[T]:
        return self.drain()


__all__ = ["ChannelClosed", "RecordChannel"]
