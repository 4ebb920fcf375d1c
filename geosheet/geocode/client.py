"""Single-shot Google Geocoding lookups for city/country queries."""

from __future__ import annotations

import logging
from typing import Any

from geosheet.common.constants import GEOCODE_ENDPOINT
from geosheet.common.http import HttpClient, HttpRequestError, RetryConfig, TimeoutConfig
from geosheet.common.logging import get_logger, log_warning
from geosheet.common.models import (
    SENTINEL,
    STATUS_LOOKUP_FAILED,
    STATUS_NOT_FOUND,
    STATUS_RESOLVED,
    Coordinate,
    LocationQuery,
)


class LookupFailed(Exception):
    """Transport-level failure for one lookup; the row degrades to the sentinel."""


def _first_location(payload: dict[str, Any]) -> Coordinate | None:
    results = payload.get("results") or []
    if not results:
        return None
    location = (results[0].get("geometry") or {}).get("location") or {}
    lat = location.get("lat")
    lng = location.get("lng")
    try:
        return Coordinate(lat=float(lat), lng=float(lng))
    except (TypeError, ValueError):
        return None


class GeocodingClient:
    def __init__(
        self,
        api_key: str,
        *,
        endpoint: str = GEOCODE_ENDPOINT,
        http_client: HttpClient | None = None,
        timeout: TimeoutConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        # One attempt only: a failed lookup is logged and defaulted, never retried.
        self.http_client = http_client or HttpClient(retry=RetryConfig(max_attempts=1))
        self.timeout = timeout
        self.logger = logger or get_logger("geocode")

    @classmethod
    def from_config(cls, geocoding_config: dict, **kwargs: Any) -> "GeocodingClient":
        timeout = float(geocoding_config["timeout_seconds"])
        return cls(
            geocoding_config["api_key"],
            endpoint=geocoding_config["endpoint"],
            timeout=TimeoutConfig(connect=min(timeout, 10.0), read=timeout),
            **kwargs,
        )

    def close(self) -> None:
        self.http_client.close()

    def lookup(self, query: LocationQuery, *, row_index: int | None = None) -> Coordinate | None:
        """Return the first candidate for ``query`` or ``None`` when there is none.

        Raises ``LookupFailed`` when the request itself fails.
        """
        if not query.is_complete:
            log_warning(
                self.logger,
                f"No city or country found: {query.address!r}",
                stage="geocode",
                row_index=row_index,
                query=query.address,
                event="QUERY_INCOMPLETE",
                status="warning",
            )

        try:
            payload = self.http_client.get_json(
                self.endpoint,
                params={"address": query.address, "key": self.api_key},
                timeout=self.timeout,
            )
        except HttpRequestError as exc:
            raise LookupFailed(str(exc)) from exc

        if not isinstance(payload, dict):
            return None
        return _first_location(payload)

    def resolve_with_status(
        self, query: LocationQuery, *, row_index: int | None = None
    ) -> tuple[Coordinate | None, str]:
        try:
            coordinate = self.lookup(query, row_index=row_index)
        except LookupFailed as exc:
            log_warning(
                self.logger,
                f"Location could not be fetched: {exc}",
                stage="geocode",
                row_index=row_index,
                query=query.address,
                event="ROW_LOOKUP_FAILED",
                status="error",
                error_code=HttpRequestError.error_code,
            )
            return None, STATUS_LOOKUP_FAILED

        if coordinate is None:
            log_warning(
                self.logger,
                f"Location not found: {query.address!r}",
                stage="geocode",
                row_index=row_index,
                query=query.address,
                event="ROW_NOT_FOUND",
                status="warning",
            )
            return None, STATUS_NOT_FOUND
        return coordinate, STATUS_RESOLVED

    def resolve(self, query: LocationQuery, *, row_index: int | None = None) -> Coordinate | None:
        coordinate, _status = self.resolve_with_status(query, row_index=row_index)
        return coordinate

    def resolve_or_sentinel(self, query: LocationQuery, *, row_index: int | None = None) -> Coordinate:
        coordinate = self.resolve(query, row_index=row_index)
        return SENTINEL if coordinate is None else coordinate
