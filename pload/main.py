from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import psycopg
import typer
from pydantic import ValidationError

from pload.config import IngestConfig, get_settings
from pload.domain.errors import PloadError
from pload.orchestrator import run_load
from pload.reporter import print_summary, render_json
from pload.utils.logging import configure_logging, get_logger

app = typer.Typer(help="Bulk-load activity CSVs into PostgreSQL with parallel batched inserts.")
log = get_logger(__name__)

PARTIAL_DATA_WARNING = (
    "Transactions committed before the failure remain in the destination table; "
    "re-running the same input is safe, conflicting rows are skipped."
)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    target = (
        "DATABASE_URL"
        if settings.database_url
        else f"{settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )
    typer.echo(
        f"DB={target} | table={settings.table} workers={settings.workers} "
        f"insert_size={settings.insert_size} tx_size={settings.tx_size} "
        f"import_id={settings.import_id}"
    )


@app.command()
def load(
    file: Optional[Path] = typer.Argument(
        None,
        help="A CSV (optionally gzipped) file to load. If omitted, read from stdin.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    dsn: Optional[str] = typer.Option(None, "--dsn", "-c", help="Database connection string."),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Number of workers."),
    import_id: Optional[int] = typer.Option(None, "--import-id", "-i", help="Import id."),
    table: Optional[str] = typer.Option(
        None, "--table", "-t", help="Database table to load data into."
    ),
    insert_size: Optional[int] = typer.Option(
        None, "--insert-size", "-m", help="Number of records per insert."
    ),
    tx_size: Optional[int] = typer.Option(
        None, "--tx-size", "-x", help="Number of records per transaction."
    ),
    output_json: bool = typer.Option(False, "--json", help="Output results in JSON."),
    results_dir: Optional[Path] = typer.Option(
        None, "--results-dir", help="Also persist the summary as JSON under this directory."
    ),
) -> None:
    """
    Load records, then print processed/affected totals.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    try:
        config = IngestConfig.from_settings(
            settings,
            workers=workers,
            import_id=import_id,
            table=table,
            insert_size=insert_size,
            tx_size=tx_size,
        )
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    try:
        summary = run_load(
            config,
            path=str(file) if file else None,
            dsn=dsn,
            results_dir=results_dir,
        )
    except PloadError as exc:
        typer.echo(f"Load failed: {exc}", err=True)
        typer.echo(PARTIAL_DATA_WARNING, err=True)
        raise typer.Exit(code=1) from exc
    except psycopg.Error as exc:
        typer.echo(f"Database error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except OSError as exc:
        typer.echo(f"Can't read input: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if output_json:
        typer.echo(render_json(summary))
    else:
        print_summary(summary)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        typer.echo(PARTIAL_DATA_WARNING, err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
