from __future__ import annotations

import json
from typing import Any, Dict, Optional

from rich import box
from rich.console import Console
from rich.table import Table


def _format_bytes(value: Optional[int]) -> str:
    if not value:
        return "N/A"
    mem_mb = value / (1024 * 1024)
    if mem_mb >= 1024:
        return f"{mem_mb / 1024:.2f} GB"
    return f"{mem_mb:.3f} MB"


def render_json(summary: Dict[str, Any]) -> str:
    """Machine-readable summary, stable key order."""
    return json.dumps(summary, indent=3, sort_keys=True, default=str)


def print_summary(summary: Dict[str, Any], console: Optional[Console] = None) -> None:
    """
    Render a load summary as a rich table.

    Shows processed/affected counts alongside timing and peak memory, plus the
    effective run configuration when present.
    """
    console = console or Console()

    table = Table(title="pload", box=box.ROUNDED, show_header=True)
    table.add_column("Processed", justify="right", style="magenta")
    table.add_column("Affected", justify="right", style="bold green")
    table.add_column("Skipped (conflict)", justify="right", style="yellow")
    table.add_column("Duration (s)", justify="right", style="green")
    table.add_column("Throughput (rows/s)", justify="right", style="cyan")
    table.add_column("Peak Memory", justify="right", style="red")

    processed = summary.get("processed", 0)
    affected = summary.get("affected", 0)
    table.add_row(
        f"{processed:,}",
        f"{affected:,}",
        f"{processed - affected:,}",
        f"{summary.get('duration_seconds', 0.0):.3f}",
        f"{summary.get('throughput_rows_per_sec', 0.0):,.2f}",
        _format_bytes(summary.get("peak_rss_bytes")),
    )

    config = summary.get("config")
    if config:
        table.caption = (
            f"table={config.get('table')} workers={config.get('workers')} "
            f"insert_size={config.get('insert_size')} tx_size={config.get('tx_size')} "
            f"import_id={config.get('import_id')}"
        )

    console.print(table)


__all__ = ["print_summary", "render_json"]
