"""
pload - parallel bulk loader for delimited activity records into PostgreSQL.

A single producer decodes the input (CSV, optionally gzipped) and hands
records through a bounded channel to a fixed pool of workers. Each worker
batches rows into multi-row `INSERT ... ON CONFLICT DO NOTHING` statements and
groups them into bounded transactions, so re-running an input only inserts
rows that are not already present.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from pload.config import IngestConfig, Settings, get_settings
from pload.domain import (
    ActivityRecord,
    DecodeError,
    IngestCancelled,
    IngestResult,
    PloadError,
    StoreError,
)
from pload.orchestrator import run_load
from pload.pipeline import CancellationToken, RecordReader, ingest_all, open_input
from pload.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "IngestConfig",
    "Settings",
    "get_settings",
    # Pipeline
    "CancellationToken",
    "RecordReader",
    "ingest_all",
    "open_input",
    "run_load",
    # Models and errors
    "ActivityRecord",
    "IngestResult",
    "DecodeError",
    "IngestCancelled",
    "PloadError",
    "StoreError",
    # Logging
    "configure_logging",
    "get_logger",
]
