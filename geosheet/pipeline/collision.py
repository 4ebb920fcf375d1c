"""Marker collision avoidance for coordinates admitted within one batch."""

from __future__ import annotations

import random
import threading

from geosheet.common.constants import JITTER_MAX
from geosheet.common.models import Coordinate


class CollisionAvoidance:
    """Owns the set of coordinates already assigned in the current batch.

    ``admit`` returns the coordinate unchanged the first time it is seen. An
    exact repeat is moved by up to ``JITTER_MAX`` on each axis, in a random
    direction per axis, and the moved coordinate is what gets recorded. The
    set only grows.

    Admission is serialized by a lock, but when rows resolve concurrently the
    order in which they reach ``admit`` is not fixed: whichever arrives first
    keeps its exact position. The sentinel ``(0, 0)`` is not special-cased.
    """

    def __init__(self, rng: random.Random | None = None, *, max_offset: float = JITTER_MAX) -> None:
        self.rng = rng or random.Random()
        self.max_offset = max_offset
        self._seen: set[tuple[float, float]] = set()
        self._lock = threading.Lock()

    def __contains__(self, coord: Coordinate) -> bool:
        with self._lock:
            return coord.key() in self._seen

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._seen)

    def _offset(self) -> float:
        magnitude = self.rng.random() * self.max_offset
        return magnitude if self.rng.random() >= 0.5 else -magnitude

    def _perturb(self, coord: Coordinate) -> Coordinate:
        while True:
            lat_offset = self._offset()
            lng_offset = self._offset()
            moved = Coordinate(lat=coord.lat + lat_offset, lng=coord.lng + lng_offset)
            if moved != coord:
                return moved

    def admit(self, coord: Coordinate) -> Coordinate:
        with self._lock:
            if coord.key() in self._seen:
                coord = self._perturb(coord)
            self._seen.add(coord.key())
            return coord
