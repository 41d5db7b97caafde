"""
Ingestion pipeline for pload.

Record source -> bounded channel -> N workers -> PostgreSQL, with a one-shot
cancellation token observed by the source and every worker. This module
re-exports the pieces so callers can import from `pload.pipeline` directly.
"""

from pload.pipeline.cancellation import CancellationToken
from pload.pipeline.channel import ChannelClosed, RecordChannel
from pload.pipeline.ingest import ingest_all
from pload.pipeline.query import InsertStatement, build_insert_query
from pload.pipeline.source import RecordReader, open_input, produce
from pload.pipeline.worker import IngestWorker

__all__ = [
    # Coordination
    "CancellationToken",
    "ChannelClosed",
    "RecordChannel",
    # Source
    "RecordReader",
    "open_input",
    "produce",
    # Store side
    "InsertStatement",
    "IngestWorker",
    "build_insert_query",
    # Entry point
    "ingest_all",
]
