"""
Ingest worker: batches records into multi-row INSERTs inside bounded transactions.

Each worker owns exactly one connection and one open transaction at a time.

- Records are coerced to `ActivityRecord` and appended to the current batch.
- A full batch (`insert_size` rows) is executed with the prepared statement;
  the inserted-row count is added to `affected`, the batch size to `processed`.
- At a batch boundary, once the transaction holds `tx_size` or more records it
  is committed and a fresh cursor/statement pair is opened. A transaction
  boundary never splits a batch.
- When the channel closes, a partial batch is flushed with a statement sized
  for exactly the remaining rows and the last transaction is committed.

Any store error is fatal: the shared cancellation token fires, the open
transaction is rolled back and a StoreError propagates. Transactions committed earlier stay committed.
"""

from __future__ import annotations

from typing import List, Optional

import psycopg
from psycopg_pool import ConnectionPool

from pload.config import IngestConfig
from pload.domain.errors import StoreError
from pload.domain.models import ActivityRecord, IngestResult, Record
from pload.pipeline.cancellation import CancellationToken
from pload.pipeline.channel import RecordChannel
from pload.pipeline.query import InsertStatement
from pload.utils.logging import get_logger

log = get_logger(__name__)


class IngestWorker:
    def __init__(
        self,
        worker_id: int,
        pool: ConnectionPool,
        config: IngestConfig,
        channel: RecordChannel[Record],
        cancel: CancellationToken,
    ) -> None:
        self.worker_id = worker_id
        self._pool = pool
        self._config = config
        self._channel = channel
        self._cancel = cancel

        self.processed = 0
        self.affected = 0
        # Records whose transaction has been committed; durable even if the run fails.
        self.committed = 0
        self.commits = 0

    @property
    def tally(self) -> IngestResult:
        return IngestResult(processed=self.processed, affected=self.affected)

    def run(self) -> Optional[IngestResult]:
        """
        Consume the channel until it closes and return the worker tally.

        Returns None instead of a tally when the run was cancelled; in that case
        the open transaction has been rolled back.
        """
        log.debug("Worker started", extra={"worker": self.worker_id})
        with self._pool.connection() as conn:
            completed = self._consume(conn)

        if not completed or self._cancel.cancelled:
            log.info(
                "Worker cancelled; tally not reported",
                extra={"worker": self.worker_id, "committed": self.committed},
            )
            return None

        log.debug(
            "Worker finished",
            extra={
                "worker": self.worker_id,
                "processed": self.processed,
                "affected": self.affected,
                "commits": self.commits,
            },
        )
        return self.tally

    def _statement(self, size: int) -> InsertStatement:
        return InsertStatement(self._config.table, size, self._config.import_id)

    def _consume(self, conn: psycopg.Connection) -> bool:
        insert_size = self._config.insert_size
        statement = self._statement(insert_size)
        cursor = conn.cursor()
        batch: List[ActivityRecord] = []
        in_tx = 0
        try:
            for record in self._channel.drain(self._cancel):
                if self._cancel.cancelled:
                    self._rollback(conn)
                    return False
                batch.append(ActivityRecord.from_fields(record))
                if len(batch) < insert_size:
                    continue

                self._flush(cursor, statement, batch)
                in_tx += len(batch)
                batch = []

                if in_tx >= self._config.tx_size:
                    cursor.close()
                    self._commit(conn, in_tx)
                    in_tx = 0
                    cursor = conn.cursor()
                    statement = self._statement(insert_size)

            if self._cancel.cancelled:
                self._rollback(conn)
                return False

            if batch:
                self._flush(cursor, self._statement(len(batch)), batch)
                in_tx += len(batch)
            cursor.close()
            self._commit(conn, in_tx)
            return True
        except BaseException as exc:
            self._cancel.cancel(str(exc) or type(exc).__name__)
            self._rollback(conn)
            raise
        finally:
            cursor.close()

    def _flush(
        self,
        cursor: psycopg.Cursor,
        statement: InsertStatement,
        batch: List[ActivityRecord],
    ) -> None:
        try:
            inserted = statement.execute(cursor, batch)
        except psycopg.Error as exc:
            raise StoreError(self.worker_id, "execute insert batch", str(exc)) from exc
        self.affected += inserted
        self.processed += len(batch)

    def _commit(self, conn: psycopg.Connection, records: int) -> None:
        try:
            conn.commit()
        except psycopg.Error as exc:
            raise StoreError(self.worker_id, "commit transaction", str(exc)) from exc
        self.committed += records
        self.commits += 1
        log.debug(
            "Transaction committed",
            extra={"worker": self.worker_id, "records": records, "commits": self.commits},
        )

    def _rollback(self, conn: psycopg.Connection) -> None:
        try:
            conn.rollback()
        except psycopg.Error as exc:
            log.warning(
                "Rollback failed",
                extra={"worker": self.worker_id, "error": str(exc)},
            )


__all__ = ["IngestWorker"]
