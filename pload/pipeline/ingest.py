"""
Fan-out/fan-in of a load run.

`ingest_all` wires one producer (the record source) and `config.workers`
workers to a bounded channel, waits for all of them, and returns the summed
tallies. A fatal error in any task fires the cancellation token, so the
producer stops distributing and the other workers roll back their open
transaction. The root-cause error is then re-raised to the caller. No partial
result is ever returned alongside an error, although transactions committed
before the failure remain in the table.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional, Tuple

from psycopg_pool import ConnectionPool

from pload.config import IngestConfig
from pload.domain.errors import IngestCancelled
from pload.domain.models import IngestResult, Record
from pload.pipeline.cancellation import CancellationToken
from pload.pipeline.channel import RecordChannel
from pload.pipeline.source import produce
from pload.pipeline.worker import IngestWorker
from pload.utils.logging import get_logger

log = get_logger(__name__)


def _collect(
    producer: Future,
    workers: Dict[Future, IngestWorker],
    cancel: CancellationToken,
) -> Optional[BaseException]:
    """
    Wait for every task and return the error that aborted the run, if any.

    A failing task fires `cancel` itself; the producer then fails with
    IngestCancelled as a side effect, possibly before the failing task is
    seen here. The root cause therefore wins over cancellation.
    """
    failures: List[Tuple[str, BaseException]] = []
    for future in as_completed([producer, *workers]):
        exc = future.exception()
        if exc is None:
            continue
        source = "record source" if future is producer else f"worker {workers[future].worker_id}"
        failures.append((source, exc))
        cancel.cancel(str(exc))
    if not failures:
        return None

    root = next((f for f in failures if not isinstance(f[1], IngestCancelled)), failures[0])
    source, error = root
    log.error(f"Load failed in {source}: {error}", extra={"error_type": type(error).__name__})
    for other_source, other in failures:
        if other is not error and not isinstance(other, IngestCancelled):
            log.warning(
                f"Additional failure in {other_source} after cancellation",
                extra={"error_type": type(other).__name__, "error": str(other)},
            )
    return error


def ingest_all(
    records: Iterable[Record],
    pool: ConnectionPool,
    config: IngestConfig,
    cancel: Optional[CancellationToken] = None,
) -> IngestResult:
    """
    Load `records` into `config.table` with `config.workers` concurrent workers.

    Parameters
    ----------
    records : iterable of Record
        Already-positioned record stream (header consumed or skipped by the reader).
    pool : ConnectionPool
        Store handle; each worker borrows one connection for the whole run.
    config : IngestConfig
        Run parameters.
    cancel : CancellationToken, optional
        External cancellation; a fresh token is used when omitted.

    Returns
    -------
    IngestResult
        Sum of every worker tally.

    Raises
    ------
    DecodeError
        A malformed input row.
    StoreError
        A failed insert or commit.
    IngestCancelled
        The run was cancelled before every worker reported.
    """
    cancel = cancel or CancellationToken()
    channel: RecordChannel[Record] = RecordChannel(config.workers)
    cancel.on_cancel(channel.wake)

    workers = [
        IngestWorker(worker_id, pool, config, channel, cancel)
        for worker_id in range(1, config.workers + 1)
    ]
    log.info(
        "Load started",
        extra={
            "table": config.table,
            "workers": config.workers,
            "insert_size": config.insert_size,
            "tx_size": config.tx_size,
            "import_id": config.import_id,
        },
    )

    executor = ThreadPoolExecutor(max_workers=config.workers + 1, thread_name_prefix="pload")
    try:
        producer = executor.submit(produce, records, channel, cancel)
        futures = {executor.submit(worker.run): worker for worker in workers}
        first_error = _collect(producer, futures, cancel)
    except BaseException:
        cancel.cancel("interrupted")
        raise
    finally:
        executor.shutdown(wait=True)

    committed = sum(worker.committed for worker in workers)
    if first_error is not None:
        log.warning(
            "Load aborted; records committed before the failure remain in the table",
            extra={"committed": committed},
        )
        raise first_error

    reports: List[Optional[IngestResult]] = [future.result() for future in futures]
    if cancel.cancelled or any(report is None for report in reports):
        log.warning(
            "Load cancelled; records committed before cancellation remain in the table",
            extra={"committed": committed},
        )
        raise IngestCancelled(cancel.reason or "cancelled")

    total = sum((report for report in reports if report is not None), IngestResult())
    log.info(
        "Load finished",
        extra={"processed": total.processed, "affected": total.affected},
    )
    return total


__all__ = ["ingest_all"]
