"""Data models used across the run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

STATUS_RESOLVED = "resolved"
STATUS_JITTERED = "jittered"
STATUS_NOT_FOUND = "not_found"
STATUS_LOOKUP_FAILED = "lookup_failed"


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float

    def key(self) -> tuple[float, float]:
        return (self.lat, self.lng)

    def to_cell_values(self) -> list[float]:
        return [self.lat, self.lng]


SENTINEL = Coordinate(lat=0.0, lng=0.0)


def _cell(row: Sequence[Any], index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


@dataclass(frozen=True)
class LocationQuery:
    city: str
    country: str

    @classmethod
    def from_row(cls, row: Sequence[Any], *, country_index: int = 1, city_index: int = 2) -> "LocationQuery":
        return cls(city=_cell(row, city_index), country=_cell(row, country_index))

    @property
    def address(self) -> str:
        return f"{self.city},{self.country}"

    @property
    def is_complete(self) -> bool:
        return bool(self.city) and bool(self.country)


@dataclass(frozen=True)
class RowResult:
    index: int
    query: LocationQuery
    coordinate: Coordinate
    status: str
