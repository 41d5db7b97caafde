"""
Error taxonomy for pload.

Every failure of a load run surfaces to the caller as exactly one `PloadError`.
Store errors keep the underlying psycopg exception as ``__cause__``.
"""

from __future__ import annotations

from typing import Optional


class PloadError(Exception):
    """Base class for all load failures."""


class DecodeError(PloadError):
    """A malformed input row; aborts the run before further records are distributed."""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        self.line = line
        prefix = f"line {line}: " if line is not None else ""
        super().__init__(f"{prefix}{message}")


class IngestCancelled(PloadError):
    """Raised when a push or report is abandoned because the run was cancelled."""

    def __init__(self, message: str = "cancelled") -> None:
        super().__init__(message)


class StoreError(PloadError):
    """A prepare/execute/commit failure. Fatal and never retried."""

    def __init__(self, worker_id: int, operation: str, message: str) -> None:
        self.worker_id = worker_id
        self.operation = operation
        super().__init__(f"worker {worker_id} failed to {operation}: {message}")


__all__ = ["DecodeError", "IngestCancelled", "PloadError", "StoreError"]
