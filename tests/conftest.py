"""
Pytest configuration for pload.

Provides fixtures for:
- An in-memory fake store (pool/connection/cursor) that mimics the
  conflict-suppressing INSERT and transaction semantics of PostgreSQL
- Real database connection management for integration tests
- Settings override for integration tests
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator

import psycopg
import pytest

from pload.config import Settings
from tests.fakes import FakeStore

SCHEMA_SQL = Path(__file__).parent.parent / "db" / "activities.sql"


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        DB_HOST=os.getenv("DB_HOST", "localhost"),
        DB_PORT=int(os.getenv("DB_PORT", "5432")),
        DB_USER=os.getenv("DB_USER", "postgres"),
        DB_PASSWORD=os.getenv("DB_PASSWORD", "postgres"),
        DB_NAME=os.getenv("DB_NAME", "pload"),
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return os.getenv("DATABASE_URL") or (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped autocommit connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection) -> bool:
    """
    Ensure the destination schema from db/activities.sql exists.
    """
    with db_connection.cursor() as cur:
        cur.execute(SCHEMA_SQL.read_text(encoding="utf-8"))
    return True


@pytest.fixture(scope="function")
def clean_activities_table(db_connection: psycopg.Connection, db_schema_initialized: bool):
    """
    Empty marketo.activities before and after each test function.
    """
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE marketo.activities;")
    yield
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE marketo.activities;")
