"""Token bucket pacing for outbound requests."""

from __future__ import annotations

import threading
import time
from typing import Callable


class TokenBucket:
    def __init__(
        self,
        rate_per_sec: float,
        capacity: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if rate_per_sec <= 0:
            raise ValueError("rate_per_sec must be positive")
        self.rate_per_sec = rate_per_sec
        self.capacity = capacity if capacity is not None else max(rate_per_sec, 1.0)
        if self.capacity < 1.0:
            raise ValueError("capacity must hold at least one token")
        self.tokens = self.capacity
        self.clock = clock
        self.sleep = sleep
        self.updated_at = clock()
        self.lock = threading.Lock()

    def acquire(self, tokens: float = 1.0) -> None:
        if tokens > self.capacity:
            raise ValueError(f"cannot acquire {tokens} tokens from a bucket of {self.capacity}")
        while True:
            with self.lock:
                now = self.clock()
                elapsed = now - self.updated_at
                self.tokens = min(self.capacity, self.tokens + elapsed * self.rate_per_sec)
                self.updated_at = now
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return
                deficit = tokens - self.tokens
                wait_for = max(deficit / self.rate_per_sec, 0.001)
            self.sleep(wait_for)
