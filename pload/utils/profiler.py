"""
Run profiling for pload.

Measures a load run the way operators read it in the summary:
- Wall-clock time (perf_counter)
- Peak RSS of the process, sampled on a background thread (psutil)
- CPU percent over the run (psutil)

Usage:
    from pload.utils.profiler import profile_block

    with profile_block("load") as stats:
        ingest_all(...)

    print(stats.duration_seconds, stats.peak_rss_bytes)
"""

from __future__ import annotations

import contextlib
import threading
import time
from dataclasses import dataclass, field
from typing import Generator, Optional

import psutil


@dataclass
class ProfileStats:
    """
    Container for profiling measurements.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    peak_rss_bytes: Optional[int] = field(default=None)
    cpu_percent: Optional[float] = field(default=None)


@contextlib.contextmanager
def profile_block(label: str, sample_interval_ms: int = 100) -> Generator[ProfileStats, None, None]:
    """
    Profile a block of code.

    Peak RSS is sampled on a daemon thread so short spikes during the run are
    captured rather than only the start/end snapshots. Stats are filled in even
    when the block raises.

    Parameters
    ----------
    label : str
        Human-friendly label for the profiled block.
    sample_interval_ms : int
        Interval in milliseconds between RSS samples.
    """
    stats = ProfileStats(label=label)
    process = psutil.Process()
    peak_rss = process.memory_info().rss
    stop_sampling = threading.Event()

    def _sample_memory() -> None:
        nonlocal peak_rss
        while not stop_sampling.wait(timeout=sample_interval_ms / 1000.0):
            try:
                peak_rss = max(peak_rss, process.memory_info().rss)
            except psutil.Error:
                return

    # cpu_percent needs a priming call
    process.cpu_percent(interval=None)

    sampler = threading.Thread(target=_sample_memory, name=f"profile-{label}", daemon=True)
    sampler.start()

    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts

        stop_sampling.set()
        sampler.join(timeout=1.0)

        stats.peak_rss_bytes = max(peak_rss, process.memory_info().rss)
        stats.cpu_percent = process.cpu_percent(interval=None)


__all__ = ["ProfileStats", "profile_block"]
