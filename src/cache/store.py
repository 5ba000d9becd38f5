"""
In-process cache stores for the settings cache.

Entries carry their own insertion time and TTL. Expiry is checked lazily
on read: an expired entry stays in the map until it is overwritten,
removed, or swept by purge_expired().
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    inserted_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.inserted_at > self.ttl

    def age(self, now: float) -> float:
        return now - self.inserted_at


class CacheStore(Protocol):
    """Key -> CacheEntry storage used by CacheLayer."""

    def get(self, key: str) -> Optional[CacheEntry]: ...

    def put(self, key: str, value: Any, ttl: float) -> CacheEntry: ...

    def remove(self, key: str) -> bool: ...

    def clear(self) -> int: ...

    def purge_expired(self) -> int: ...

    def __len__(self) -> int: ...


class MemoryCacheStore:
    """Thread-safe dict-backed store. ``clock`` defaults to time.monotonic."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for ``key`` if present and not expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or entry.is_expired(now):
            return None
        return entry

    def put(self, key: str, value: Any, ttl: float) -> CacheEntry:
        entry = CacheEntry(value=value, inserted_at=self._clock(), ttl=ttl)
        with self._lock:
            self._entries[key] = entry
        return entry

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        with self._lock:
            cleared = len(self._entries)
            self._entries.clear()
        return cleared

    def purge_expired(self) -> int:
        """Remove every expired entry. Nothing calls this automatically."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class NullCacheStore:
    """Store that keeps nothing; every read goes to the remote store."""

    def get(self, key: str) -> Optional[CacheEntry]:
        return None

    def put(self, key: str, value: Any, ttl: float) -> CacheEntry:
        return CacheEntry(value=value, inserted_at=time.monotonic(), ttl=ttl)

    def remove(self, key: str) -> bool:
        return False

    def clear(self) -> int:
        return 0

    def purge_expired(self) -> int:
        return 0

    def __len__(self) -> int:
        return 0
