"""
Synthetic activity data generator for pload.

Writes deterministic pseudo-random activity rows in the loader's input format
(header + 8 fields, literal `null` for missing values), optionally gzipped and
optionally seeded with duplicate GUIDs to exercise conflict suppression.
"""

from __future__ import annotations

import csv
import gzip
import io
import json
import random
import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, TextIO

import typer

from pload.domain.models import NULL_SENTINEL

app = typer.Typer(help="Generate synthetic activity CSVs for pload.")

HEADER = [
    "marketoGUID",
    "leadId",
    "activityDate",
    "activityTypeId",
    "campaignId",
    "primaryAttributeValueId",
    "primaryAttributeValue",
    "attributes",
]

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _maybe_null(rng: random.Random, value: str, null_rate: float) -> str:
    return NULL_SENTINEL if null_rate and rng.random() < null_rate else value


def _activity_row(rng: random.Random, guid: int, null_rate: float) -> list[str]:
    activity_date = _EPOCH + timedelta(seconds=rng.randint(0, 365 * 24 * 3600))
    attributes = [
        {"name": "Source", "value": rng.choice(["Web", "Email", "Import", "API"])},
        {"name": "Score", "value": rng.randint(0, 100)},
    ]
    return [
        str(guid),
        _maybe_null(rng, str(rng.randint(1, 1_000_000)), null_rate),
        _maybe_null(rng, activity_date.strftime("%Y-%m-%dT%H:%M:%SZ"), null_rate),
        _maybe_null(rng, str(rng.choice([1, 2, 6, 7, 10, 12, 13])), null_rate),
        _maybe_null(rng, str(rng.randint(1, 5_000)), null_rate),
        _maybe_null(rng, str(rng.randint(1, 50_000)), null_rate),
        _maybe_null(rng, rng.choice(["Landing Page", "Newsletter", "Webinar, \"Q3\""]), null_rate),
        _maybe_null(rng, json.dumps(attributes), null_rate),
    ]


def write_rows(
    out: TextIO,
    rows: int,
    seed: int = 42,
    null_rate: float = 0.0,
    duplicate_rate: float = 0.0,
) -> int:
    """
    Write the header plus `rows` data rows to `out`.

    With `duplicate_rate` > 0 some rows reuse an earlier GUID, so the number of
    distinct GUIDs (returned) can be lower than `rows`.
    """
    rng = random.Random(seed)
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(HEADER)
    seen: list[int] = []
    for i in range(rows):
        if seen and duplicate_rate and rng.random() < duplicate_rate:
            guid = rng.choice(seen)
        else:
            guid = i + 1
            seen.append(guid)
        writer.writerow(_activity_row(rng, guid, null_rate))
    return len(seen)


def generate_csv(
    path: Path,
    rows: int,
    seed: int = 42,
    compress: bool = False,
    null_rate: float = 0.0,
    duplicate_rate: float = 0.0,
) -> int:
    """Write a CSV (gzipped when `compress`) and return the distinct GUID count."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if compress:
        with gzip.open(path, "wb") as raw, io.TextIOWrapper(raw, encoding="utf-8", newline="") as out:
            return write_rows(out, rows, seed, null_rate, duplicate_rate)
    with path.open("w", encoding="utf-8", newline="") as out:
        return write_rows(out, rows, seed, null_rate, duplicate_rate)


@app.command()
def main(
    rows: int = typer.Option(100_000, "--rows", "-r", help="Number of rows to generate."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output path; writes to stdout when omitted."
    ),
    compress: bool = typer.Option(False, "--gzip", help="gzip the output file."),
    null_rate: float = typer.Option(0.0, "--null-rate", help="Share of optional fields set to null."),
    duplicate_rate: float = typer.Option(
        0.0, "--duplicate-rate", help="Share of rows reusing an earlier GUID."
    ),
) -> None:
    """
    Generate synthetic activities for loading with `pload load`.
    """
    start = time.perf_counter()
    if output is None:
        distinct = write_rows(sys.stdout, rows, seed, null_rate, duplicate_rate)
    else:
        distinct = generate_csv(output, rows, seed, compress, null_rate, duplicate_rate)
    duration = time.perf_counter() - start
    typer.echo(
        f"Generated {rows:,} rows ({distinct:,} distinct GUIDs) in {duration:.2f}s",
        err=True,
    )


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
