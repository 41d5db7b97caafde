"""
Multi-row, conflict-tolerant INSERT construction.

The statement inserts N rows and silently skips rows whose `marketoguid`
already exists, then reports how many rows were actually inserted:

    WITH inserted AS (
        INSERT INTO <table> (_dw_last_import_id, marketoguid, ...)
        VALUES (%(import_id)s, %(r0_0)s, ...), (%(import_id)s, %(r1_0)s, ...)
        ON CONFLICT (marketoguid) DO NOTHING
        RETURNING 1
    )
    SELECT COUNT(*) FROM inserted

The import id is one named parameter shared by every row, so it is bound once
per execution.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

import psycopg
from psycopg import sql

from pload.domain.models import RECORD_FIELDS, ActivityRecord

IMPORT_ID_COLUMN = "_dw_last_import_id"
CONFLICT_COLUMN = "marketoguid"
IMPORT_ID_PARAM = "import_id"

_TEMPLATE = sql.SQL(
    "WITH inserted AS ("
    " INSERT INTO {table} ({columns}) VALUES {values}"
    " ON CONFLICT ({conflict}) DO NOTHING"
    " RETURNING 1"
    ") SELECT COUNT(*) FROM inserted"
)


def table_identifier(table: str) -> sql.Identifier:
    """Quote a possibly schema-qualified table name (``schema.table``)."""
    parts = table.split(".")
    if any(not part for part in parts) or len(parts) > 2:
        raise ValueError(f"invalid table name: {table!r}")
    return sql.Identifier(*parts)


def param_name(row: int, column: int) -> str:
    return f"r{row}_{column}"


def build_insert_query(table: str, rows: int) -> sql.Composed:
    """Build the INSERT for exactly `rows` rows."""
    if rows < 1:
        raise ValueError("an insert needs at least one row")
    columns = sql.SQL(", ").join(
        sql.Identifier(name) for name in (IMPORT_ID_COLUMN,) + RECORD_FIELDS
    )
    values = sql.SQL(", ").join(
        sql.SQL("({})").format(
            sql.SQL(", ").join(
                [sql.Placeholder(IMPORT_ID_PARAM)]
                + [sql.Placeholder(param_name(i, j)) for j in range(len(RECORD_FIELDS))]
            )
        )
        for i in range(rows)
    )
    return _TEMPLATE.format(
        table=table_identifier(table),
        columns=columns,
        values=values,
        conflict=sql.Identifier(CONFLICT_COLUMN),
    )


def bind_params(import_id: Optional[int], rows: Sequence[ActivityRecord]) -> Dict[str, Any]:
    params: Dict[str, Any] = {IMPORT_ID_PARAM: import_id}
    for i, row in enumerate(rows):
        for j, value in enumerate(row.values()):
            params[param_name(i, j)] = value
    return params


class InsertStatement:
    """
    A prepared INSERT for a fixed number of rows.

    Executions go through psycopg with ``prepare=True`` so the server plans the
    statement once per connection and reuses it for every full batch.
    """

    def __init__(self, table: str, size: int, import_id: Optional[int]) -> None:
        self.size = size
        self.import_id = import_id
        self.query = build_insert_query(table, size)

    def execute(self, cursor: psycopg.Cursor, rows: Sequence[ActivityRecord]) -> int:
        """Insert `rows` and return how many were actually inserted."""
        if len(rows) != self.size:
            raise ValueError(f"statement expects {self.size} rows, got {len(rows)}")
        cursor.execute(self.query, bind_params(self.import_id, rows), prepare=True)
        row = cursor.fetchone()
        return int(row[0]) if row else 0


__all__ = [
    "CONFLICT_COLUMN",
    "IMPORT_ID_COLUMN",
    "IMPORT_ID_PARAM",
    "InsertStatement",
    "bind_params",
    "build_insert_query",
    "param_name",
    "table_identifier",
]
