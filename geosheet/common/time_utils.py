"""UTC-focused helpers for run metadata."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_timestamp_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")


def elapsed_ms(started: float, finished: float) -> int:
    return int(round((finished - started) * 1000))
