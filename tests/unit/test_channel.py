from __future__ import annotations

import threading
import time

import pytest

from pload.domain.errors import IngestCancelled
from pload.pipeline.cancellation import CancellationToken
from pload.pipeline.channel import ChannelClosed, RecordChannel

JOIN_TIMEOUT = 5


def test_channel_is_fifo() -> None:
    channel: RecordChannel[int] = RecordChannel(3)
    for item in (1, 2, 3):
        channel.put(item)
    channel.close()

    assert list(channel) == [1, 2, 3]
    assert channel.get() is None


def test_channel_rejects_zero_capacity() -> None:
    with pytest.raises(ValueError):
        RecordChannel(0)


def test_put_blocks_when_full_until_a_get() -> None:
    channel: RecordChannel[int] = RecordChannel(1)
    channel.put(1)
    done = threading.Event()

    def push() -> None:
        channel.put(2)
        done.set()

    thread = threading.Thread(target=push)
    thread.start()
    assert not done.wait(0.1)

    assert channel.get() == 1
    thread.join(JOIN_TIMEOUT)
    assert done.is_set()
    assert channel.get() == 2


def test_close_wakes_every_blocked_reader() -> None:
    channel: RecordChannel[int] = RecordChannel(2)
    results = []
    lock = threading.Lock()

    def pop() -> None:
        item = channel.get()
        with lock:
            results.append(item)

    threads = [threading.Thread(target=pop) for _ in range(3)]
    for thread in threads:
        thread.start()
    time.sleep(0.05)
    channel.close()
    for thread in threads:
        thread.join(JOIN_TIMEOUT)

    assert results == [None, None, None]


def test_close_lets_readers_drain_remaining_items() -> None:
    channel: RecordChannel[int] = RecordChannel(2)
    channel.put(1)
    channel.put(2)
    channel.close()

    assert channel.get() == 1
    assert channel.get() == 2
    assert channel.get() is None


def test_put_after_close_raises() -> None:
    channel: RecordChannel[int] = RecordChannel(1)
    channel.close()
    with pytest.raises(ChannelClosed):
        channel.put(1)


def test_cancel_aborts_blocked_put() -> None:
    channel: RecordChannel[int] = RecordChannel(1)
    cancel = CancellationToken()
    cancel.on_cancel(channel.wake)
    channel.put(1, cancel)
    errors = []

    def push() -> None:
        try:
            channel.put(2, cancel)
        except IngestCancelled as exc:
            errors.append(exc)

    thread = threading.Thread(target=push)
    thread.start()
    time.sleep(0.05)
    cancel.cancel("stop")
    thread.join(JOIN_TIMEOUT)

    assert not thread.is_alive()
    assert len(errors) == 1
    assert len(channel) == 1


def test_cancellation_token_fires_once() -> None:
    cancel = CancellationToken()
    fired = []
    cancel.on_cancel(lambda: fired.append("early"))

    assert cancel.cancel("first") is True
    assert cancel.cancel("second") is False
    cancel.on_cancel(lambda: fired.append("late"))

    assert cancel.cancelled
    assert cancel.reason == "first"
    assert fired == ["early", "late"]


def test_cancel_releases_blocked_reader() -> None:
    channel: RecordChannel[int] = RecordChannel(1)
    cancel = CancellationToken()
    cancel.on_cancel(channel.wake)
    results = []

    def pop() -> None:
        results.append(channel.get(cancel))

    thread = threading.Thread(target=pop)
    thread.start()
    time.sleep(0.05)
    cancel.cancel("worker failed")
    thread.join(JOIN_TIMEOUT)

    assert not thread.is_alive()
    assert results == [None]
    assert not channel.closed


def test_drain_stops_once_cancelled() -> None:
    channel: RecordChannel[int] = RecordChannel(3)
    cancel = CancellationToken()
    for item in (1, 2, 3):
        channel.put(item)

    seen = []
    for item in channel.drain(cancel):
        seen.append(item)
        cancel.cancel()

    assert seen == [1]
    assert len(channel) == 2
