"""Run report aggregation."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Sequence

from geosheet.common.fs import write_json
from geosheet.common.models import (
    STATUS_JITTERED,
    STATUS_LOOKUP_FAILED,
    STATUS_NOT_FOUND,
    STATUS_RESOLVED,
    RowResult,
)

STATUSES = (STATUS_RESOLVED, STATUS_JITTERED, STATUS_NOT_FOUND, STATUS_LOOKUP_FAILED)


def summarise_results(results: Sequence[RowResult]) -> dict:
    counts = Counter(result.status for result in results)
    return {status: counts.get(status, 0) for status in STATUSES}


def write_run_summary(
    data_dir: Path,
    *,
    run_id: str,
    results: Sequence[RowResult],
    written_range: str | None,
) -> Path:
    counts = summarise_results(results)
    unresolved = counts[STATUS_NOT_FOUND] + counts[STATUS_LOOKUP_FAILED]

    status = "success"
    if written_range is None:
        status = "error"
    elif unresolved > 0:
        status = "partial"

    summary_path = data_dir / "out" / "reports" / "run_summary.json"
    payload = {
        "run_id": run_id,
        "status": status,
        "rows": len(results),
        "counts": counts,
        "unresolved_rows": [result.index for result in results if result.status in (STATUS_NOT_FOUND, STATUS_LOOKUP_FAILED)],
        "written_range": written_range,
    }
    write_json(summary_path, payload)
    return summary_path
