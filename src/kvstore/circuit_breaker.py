"""Circuit breaker guarding calls to the remote store."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional


@dataclass
class BreakerState:
    failures: int = 0
    tripped_until: float = 0.0
    last_error: Optional[str] = None

    def reset(self) -> None:
        self.failures = 0
        self.tripped_until = 0.0
        self.last_error = None


class CircuitBreaker:
    """Trips after ``max_failures`` consecutive failures and stays open for ``ttl_sec``.

    ``max_failures <= 0`` disables the breaker. Safe to share between threads.
    """

    def __init__(self, max_failures: int = 3, ttl_sec: float = 30) -> None:
        self.max_failures = max_failures
        self.ttl_sec = ttl_sec
        self._state = BreakerState()
        self._lock = threading.Lock()

    @property
    def state(self) -> BreakerState:
        return self._state

    @property
    def is_open(self) -> bool:
        return not self.can_attempt()

    def can_attempt(self) -> bool:
        with self._lock:
            return time.time() >= self._state.tripped_until

    def record_success(self) -> None:
        with self._lock:
            self._state.reset()

    def record_failure(self, error: Optional[str] = None) -> None:
        if self.max_failures <= 0:
            return
        with self._lock:
            self._state.failures += 1
            self._state.last_error = error
            if self._state.failures >= self.max_failures:
                self._state.tripped_until = time.time() + self.ttl_sec
                self._state.failures = 0
