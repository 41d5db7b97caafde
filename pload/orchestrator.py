"""
Orchestrator for a load run: open the input, connect, ingest, profile, persist.

Usage (example from CLI):
    from pload.config import IngestConfig
    from pload.orchestrator import run_load

    summary = run_load(IngestConfig(workers=8, insert_size=500), path="activities.csv.gz")
    print(summary["processed"], summary["affected"])

When `results_dir` is given the summary is saved as:
- `<results_dir>/latest.json` (last run)
- `<results_dir>/run-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from pload.config import IngestConfig, get_settings
from pload.domain.models import IngestResult
from pload.infrastructure.db_factory import build_dsn, check_connection, create_pool
from pload.pipeline.cancellation import CancellationToken
from pload.pipeline.ingest import ingest_all
from pload.pipeline.source import RecordReader, open_input
from pload.utils.logging import get_logger
from pload.utils.profiler import ProfileStats, profile_block

log = get_logger(__name__)


def _round_float(value: float, decimals: int = 2) -> float:
    """Round a float to specified decimal places for human-readable output."""
    return round(value, decimals)


def build_summary(result: IngestResult, stats: ProfileStats, config: IngestConfig) -> Dict[str, Any]:
    """Merge the aggregate result with profiler stats into a JSON-ready summary."""
    duration = stats.duration_seconds
    return {
        "processed": result.processed,
        "affected": result.affected,
        "duration_seconds": _round_float(duration, 3),
        "throughput_rows_per_sec": _round_float(result.processed / duration) if duration else 0.0,
        "peak_rss_bytes": stats.peak_rss_bytes,
        "cpu_percent": _round_float(stats.cpu_percent, 1) if stats.cpu_percent else None,
        "config": config.model_dump(),
    }


def _persist_summary(payload: Dict[str, Any], results_dir: Path) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    for path in (latest_path, archive_path):
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)

    log.info("Summary persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})


def run_load(
    config: IngestConfig,
    path: Optional[str] = None,
    dsn: Optional[str] = None,
    results_dir: Optional[Path | str] = None,
    cancel: Optional[CancellationToken] = None,
) -> Dict[str, Any]:
    """
    Execute one load run end to end.

    Parameters
    ----------
    config : IngestConfig
        Run parameters.
    path : str | None
        CSV file to load (plain or gzip). None reads stdin.
    dsn : str | None
        Connection string; defaults to the one derived from settings.
    results_dir : Path | str | None
        Directory to store the JSON summary; nothing is written when None.
    cancel : CancellationToken | None
        External cancellation token.

    Returns
    -------
    dict
        Run summary (counts, duration, peak memory, effective config).
    """
    settings = get_settings()
    conninfo = dsn or build_dsn(settings)

    stream = open_input(path)
    try:
        check_connection(conninfo, connect_timeout=settings.db_connect_timeout)
        with create_pool(conninfo, config.workers) as pool:
            with profile_block("load") as stats:
                result = ingest_all(RecordReader(stream), pool, config, cancel=cancel)
    finally:
        stream.close()

    summary = build_summary(result, stats, config)
    summary["timestamp"] = datetime.now(timezone.utc).isoformat()
    summary["input"] = path or "<stdin>"

    if results_dir is not None:
        _persist_summary(summary, Path(results_dir))

    return summary


__all__ = ["build_summary", "run_load"]
