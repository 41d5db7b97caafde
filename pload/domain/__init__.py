"""
Domain package for pload.

Exports the record/result models and the error taxonomy shared by the
pipeline, orchestrator and CLI. Keep this package free of I/O.
"""

from pload.domain.errors import DecodeError, IngestCancelled, PloadError, StoreError
from pload.domain.models import (
    ActivityRecord,
    IngestResult,
    NULL_SENTINEL,
    RECORD_ARITY,
    RECORD_FIELDS,
    Record,
    nullify,
)

__all__ = [
    # Models
    "ActivityRecord",
    "IngestResult",
    "NULL_SENTINEL",
    "RECORD_ARITY",
    "RECORD_FIELDS",
    "Record",
    "nullify",
    # Errors
    "DecodeError",
    "IngestCancelled",
    "PloadError",
    "StoreError",
]
