"""
Timing helpers shared by logging and task statistics.

- Durations use the monotonic clock so they survive wall clock adjustments
- Log lines carry a UTC timestamp and the process uptime
"""
from __future__ import annotations

import time
from datetime import datetime, timezone

_PROCESS_START_MONOTONIC = time.monotonic()
_PROCESS_START_WALL = time.time()


def _iso(dt: datetime) -> str:
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def uptime_seconds() -> float:
    """Seconds since the package was imported."""
    return time.monotonic() - _PROCESS_START_MONOTONIC


def now_utc_iso() -> str:
    """ISO-8601 UTC timestamp with milliseconds, e.g. 2025-08-25T12:34:56.789Z."""
    return _iso(datetime.now(timezone.utc))


def process_start_utc_iso() -> str:
    return _iso(datetime.fromtimestamp(_PROCESS_START_WALL, tz=timezone.utc))


class Stopwatch:
    """Measures elapsed monotonic time from construction."""

    def __init__(self):
        self._start = time.monotonic()

    def elapsed(self) -> float:
        return time.monotonic() - self._start

    def elapsed_ms(self) -> int:
        return int(self.elapsed() * 1000)
