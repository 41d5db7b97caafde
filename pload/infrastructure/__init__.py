"""
Infrastructure package for pload.

Centralizes database connectivity concerns (DSN, connectivity check, pooling).
Keep this layer focused on I/O and resource management, decoupled from the
pipeline logic.
"""

from pload.infrastructure.db_factory import build_dsn, check_connection, create_pool

__all__ = [
    "build_dsn",
    "check_connection",
    "create_pool",
]
