"""Paced batch geocoding with fail-soft rows and index-ordered aggregation."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Protocol, Sequence

from geosheet.common.logging import get_logger, log_event, log_warning
from geosheet.common.models import (
    SENTINEL,
    STATUS_JITTERED,
    STATUS_LOOKUP_FAILED,
    STATUS_RESOLVED,
    Coordinate,
    LocationQuery,
    RowResult,
)
from geosheet.common.rate_limit import TokenBucket
from geosheet.common.time_utils import elapsed_ms
from geosheet.pipeline.collision import CollisionAvoidance


class Geocoder(Protocol):
    def resolve_with_status(
        self, query: LocationQuery, *, row_index: int | None = None
    ) -> tuple[Coordinate | None, str]: ...


class BatchOrchestrator:
    """Resolve every input row to exactly one coordinate, in input order.

    Each row is one unit of work on a thread pool: take a token from the
    shared bucket, geocode, fall back to the sentinel, then pass through
    collision avoidance. ``run`` returns only once every unit has finished.
    A failing row never aborts the batch.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        *,
        collisions: CollisionAvoidance | None = None,
        pacer: TokenBucket | None = None,
        max_workers: int = 16,
        country_index: int = 1,
        city_index: int = 2,
        run_id: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.geocoder = geocoder
        self.collisions = collisions or CollisionAvoidance()
        self.pacer = pacer or TokenBucket(rate_per_sec=10.0, capacity=1.0)
        self.max_workers = max_workers
        self.country_index = country_index
        self.city_index = city_index
        self.run_id = run_id
        self.logger = logger or get_logger("orchestrator")

    @classmethod
    def from_config(cls, cfg: dict, geocoder: Geocoder, **kwargs: Any) -> "BatchOrchestrator":
        pacing = cfg["pacing"]
        return cls(
            geocoder,
            pacer=TokenBucket(rate_per_sec=float(pacing["rate_per_sec"]), capacity=float(pacing["capacity"])),
            max_workers=int(pacing["max_workers"]),
            country_index=cfg["columns"]["country_index"],
            city_index=cfg["columns"]["city_index"],
            **kwargs,
        )

    def _process(self, index: int, row: Sequence[Any]) -> RowResult:
        query = LocationQuery.from_row(row, country_index=self.country_index, city_index=self.city_index)
        self.pacer.acquire()

        resolved, status = self.geocoder.resolve_with_status(query, row_index=index)
        candidate = SENTINEL if resolved is None else resolved
        admitted = self.collisions.admit(candidate)
        if admitted != candidate and status == STATUS_RESOLVED:
            status = STATUS_JITTERED
        return RowResult(index=index, query=query, coordinate=admitted, status=status)

    def _degraded(self, index: int, row: Sequence[Any], exc: BaseException) -> RowResult:
        query = LocationQuery.from_row(row, country_index=self.country_index, city_index=self.city_index)
        log_warning(
            self.logger,
            f"row {index} failed unexpectedly: {exc!r}",
            run_id=self.run_id,
            stage="geocode",
            row_index=index,
            query=query.address,
            event="ROW_LOOKUP_FAILED",
            status="error",
            error_code="UNEXPECTED_ERROR",
        )
        return RowResult(
            index=index,
            query=query,
            coordinate=self.collisions.admit(SENTINEL),
            status=STATUS_LOOKUP_FAILED,
        )

    def run_detailed(self, rows: Sequence[Sequence[Any]]) -> list[RowResult]:
        started = time.monotonic()
        results: list[RowResult | None] = [None] * len(rows)

        if rows:
            workers = max(1, min(self.max_workers, len(rows)))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="geocode") as executor:
                futures = {executor.submit(self._process, index, row): index for index, row in enumerate(rows)}
                for future in as_completed(futures):
                    index = futures[future]
                    try:
                        results[index] = future.result()
                    except Exception as exc:
                        results[index] = self._degraded(index, rows[index], exc)

        ordered = [result for result in results if result is not None]
        if len(ordered) != len(rows):
            raise RuntimeError("batch finished with unfilled rows")

        log_event(
            self.logger,
            "batch geocoded",
            run_id=self.run_id,
            stage="geocode",
            event="BATCH_DONE",
            status="ok",
            rows_in=len(rows),
            rows_out=len(ordered),
            duration_ms=elapsed_ms(started, time.monotonic()),
        )
        return ordered

    def run(self, rows: Sequence[Sequence[Any]]) -> list[Coordinate]:
        return [result.coordinate for result in self.run_detailed(rows)]
