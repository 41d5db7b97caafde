"""
Database connection factory utilities for pload.

Provides DSN composition, a connectivity check, and the connection pool that
serves as the store handle for a load run (one connection per worker).

Only connection establishment is retried (tenacity, exponential backoff).
Statements and commits issued by the pipeline are never retried.
"""

from __future__ import annotations

from typing import Optional

import psycopg
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from pload.config import Settings, get_settings
from pload.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings, preferring DATABASE_URL when set."""
    settings = settings or get_settings()
    if settings.database_url:
        return settings.database_url
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def check_connection(dsn: str, connect_timeout: int = 10) -> None:
    """
    Verify the database is reachable before any work is distributed.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    with psycopg.connect(dsn, connect_timeout=connect_timeout) as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
            cur.fetchone()
    log.debug("Database reachable")


def create_pool(dsn: str, workers: int, timeout: float = 30.0) -> ConnectionPool:
    """
    Open a connection pool with exactly one connection per worker.

    Connections are handed out in non-autocommit mode so each worker controls
    its own transaction boundaries.

    Parameters
    ----------
    dsn : str
        Connection string.
    workers : int
        Number of workers; both the minimum and maximum pool size.
    timeout : float
        Seconds to wait for the pool to fill before giving up.

    Returns
    -------
    ConnectionPool
        An opened pool; close it (or use it as a context manager) when done.
    """
    pool = ConnectionPool(
        conninfo=dsn,
        min_size=workers,
        max_size=workers,
        open=True,
        name="pload",
    )
    try:
        pool.wait(timeout=timeout)
    except Exception:
        pool.close()
        raise
    log.debug("Connection pool ready", extra={"workers": workers})
    return pool


__all__ = ["build_dsn", "check_connection", "create_pool"]
