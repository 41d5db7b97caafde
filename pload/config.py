"""
Configuration for pload.

`Settings` uses Pydantic Settings to load environment variables (and `.env`)
for the database connection, logging, and loader defaults. `IngestConfig` is
the validated, read-only set of values a single load run is executed with.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TABLE = "marketo.activities"

# PostgreSQL caps a statement at 65535 bind parameters; 8 per row plus the import id.
MAX_INSERT_SIZE = (65535 - 1) // 8


class Settings(BaseSettings):
    # Database
    database_url: Optional[str] = Field(None, alias="DATABASE_URL")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("pload", alias="DB_NAME")
    db_connect_timeout: int = Field(10, alias="DB_CONNECT_TIMEOUT")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Loader defaults
    workers: int = Field(4, alias="PLOAD_WORKERS")
    insert_size: int = Field(2, alias="PLOAD_INSERT_SIZE")
    tx_size: int = Field(25_000, alias="PLOAD_TX_SIZE")
    table: str = Field(DEFAULT_TABLE, alias="PLOAD_TABLE")
    import_id: Optional[int] = Field(None, alias="PLOAD_IMPORT_ID")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class IngestConfig(BaseModel):
    """
    Parameters of a single load run.

    Attributes
    ----------
    import_id : int | None
        Lineage identifier written to every inserted row; None is stored as NULL.
    table : str
        Destination table, optionally schema-qualified (``schema.table``).
    workers : int
        Number of concurrent workers, each holding one connection.
    insert_size : int
        Rows per multi-row INSERT statement.
    tx_size : int
        Records per transaction before committing.
    """

    import_id: Optional[int] = None
    table: str = Field(DEFAULT_TABLE, min_length=1)
    workers: int = Field(4, ge=1)
    insert_size: int = Field(2, ge=1, le=MAX_INSERT_SIZE)
    tx_size: int = Field(25_000, ge=1)

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: object) -> "IngestConfig":
        """Build a run config from settings, letting non-None overrides win."""
        values = {
            "import_id": settings.import_id,
            "table": settings.table,
            "workers": settings.workers,
            "insert_size": settings.insert_size,
            "tx_size": settings.tx_size,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["DEFAULT_TABLE", "MAX_INSERT_SIZE", "IngestConfig", "Settings", "get_settings"]
