from __future__ import annotations

import threading
import time
from typing import Iterable, Tuple

import pytest

from pload.config import IngestConfig
from pload.domain.errors import StoreError
from pload.domain.models import IngestResult
from pload.pipeline.cancellation import CancellationToken
from pload.pipeline.channel import RecordChannel
from pload.pipeline.worker import IngestWorker
from tests.fakes import FakeStore, make_records


def _closed_channel(records: Iterable[Tuple[str, ...]]) -> RecordChannel:
    records = list(records)
    channel: RecordChannel = RecordChannel(max(len(records), 1))
    for record in records:
        channel.put(record)
    channel.close()
    return channel


def _worker(
    store: FakeStore,
    records: Iterable[Tuple[str, ...]],
    cancel: CancellationToken | None = None,
    **config: object,
) -> IngestWorker:
    return IngestWorker(
        1,
        store,  # type: ignore[arg-type]
        IngestConfig(workers=1, **config),
        _closed_channel(records),
        cancel or CancellationToken(),
    )


def test_remainder_batch_is_flushed_with_resized_statement(fake_store: FakeStore) -> None:
    worker = _worker(fake_store, make_records(5), insert_size=2, tx_size=100)

    result = worker.run()

    assert result == IngestResult(processed=5, affected=5)
    assert fake_store.batch_sizes() == [2, 2, 1]
    assert fake_store.commit_sizes() == [5]
    assert len(fake_store.rows) == 5


def test_full_batches_use_prepared_statements(fake_store: FakeStore) -> None:
    _worker(fake_store, make_records(4), insert_size=2).run()

    assert [prepare for _, _, prepare in fake_store.statements] == [True, True]


def test_transactions_commit_every_tx_size_records(fake_store: FakeStore) -> None:
    worker = _worker(fake_store, make_records(7), insert_size=1, tx_size=3)

    result = worker.run()

    assert result == IngestResult(processed=7, affected=7)
    assert fake_store.commit_sizes() == [3, 3, 1]
    assert worker.commits == 3
    assert worker.committed == 7


def test_transaction_boundary_never_splits_a_batch(fake_store: FakeStore) -> None:
    _worker(fake_store, make_records(10), insert_size=4, tx_size=3).run()

    assert fake_store.batch_sizes() == [4, 4, 2]
    # The window is checked at batch boundaries: 4 >= 3 commits after every batch.
    assert fake_store.commit_sizes() == [4, 4, 2]


def test_empty_stream_commits_empty_transaction(fake_store: FakeStore) -> None:
    result = _worker(fake_store, []).run()

    assert result == IngestResult(0, 0)
    assert fake_store.statements == []
    assert fake_store.commit_sizes() == [0]


def test_conflicting_rows_count_as_processed_not_affected(fake_store: FakeStore) -> None:
    records = make_records(3) + make_records(2)  # GUIDs 1 and 2 repeat

    result = _worker(fake_store, records, insert_size=2).run()

    assert result == IngestResult(processed=5, affected=3)
    assert len(fake_store.rows) == 3


def test_null_sentinel_is_stored_as_none(fake_store: FakeStore) -> None:
    record = ("9", "null", "null", "1", "null", "2", "null", "null")

    _worker(fake_store, [record], import_id=None).run()

    assert fake_store.rows["9"] == (None, "9", None, None, "1", None, "2", None, None)


def test_import_id_is_written_to_every_row(fake_store: FakeStore) -> None:
    _worker(fake_store, make_records(3), import_id=42, insert_size=2).run()

    assert {row[0] for row in fake_store.rows.values()} == {42}


def test_store_error_rolls_back_and_keeps_earlier_commits(fake_store: FakeStore) -> None:
    fake_store.fail_on_guids.add("4")
    worker = _worker(fake_store, make_records(5), insert_size=1, tx_size=3)

    with pytest.raises(StoreError, match="execute insert batch") as excinfo:
        worker.run()

    assert excinfo.value.worker_id == 1
    assert excinfo.value.__cause__ is not None
    assert sorted(fake_store.rows) == ["1", "2", "3"]
    assert fake_store.reserved == {"1", "2", "3"}
    assert fake_store.rollbacks >= 1
    assert worker.committed == 3


def test_commit_failure_is_fatal(fake_store: FakeStore) -> None:
    fake_store.fail_on_commit = True

    with pytest.raises(StoreError, match="commit transaction"):
        _worker(fake_store, make_records(2), insert_size=2).run()

    assert fake_store.rows == {}
    assert fake_store.reserved == set()


def test_cancelled_worker_rolls_back_and_does_not_report(fake_store: FakeStore) -> None:
    cancel = CancellationToken()
    cancel.cancel()

    result = _worker(fake_store, make_records(3), cancel=cancel, insert_size=2).run()

    assert result is None
    assert fake_store.rows == {}
    assert fake_store.commits == []


def test_worker_waiting_on_open_channel_exits_on_cancel(fake_store: FakeStore) -> None:
    cancel = CancellationToken()
    channel: RecordChannel = RecordChannel(2)
    cancel.on_cancel(channel.wake)
    for record in make_records(2):
        channel.put(record)
    worker = IngestWorker(1, fake_store, IngestConfig(workers=1, insert_size=1), channel, cancel)  # type: ignore[arg-type]
    results = []

    thread = threading.Thread(target=lambda: results.append(worker.run()))
    thread.start()
    deadline = time.monotonic() + 5
    while len(fake_store.statements) < 2 and time.monotonic() < deadline:
        time.sleep(0.001)
    # The channel stays open: the source is still stuck reading its input.
    cancel.cancel("worker 2 failed")
    thread.join(5)

    assert not thread.is_alive()
    assert results == [None]
    assert fake_store.rows == {}
