#!/usr/bin/env python3
"""
Settings Cache Layer
Read-through TTL cache in front of a remote key-value store.

Implements:
- read_through(key, default, value_type) -> value | default
- read_through_aggregate(aggregate_key, fetch_fn) -> list | dict | None
- write_through(key, value) -> WriteResult
- exists(key) -> bool
- invalidate(key=None)
- get_stats() -> {hits, misses, writes, failed_writes, invalidations, ...}
"""

import copy
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from kvstore.client import RemoteStoreClient
from kvstore.codec import ValueDecodeError, encode_value, read_as
from kvstore.results import FetchResult, Outcome, WriteResult

from .store import CacheStore

logger = logging.getLogger(__name__)

ALL_KEYS = "__allKeys"
ALL_VALUES = "__all"
AGGREGATE_KEYS = (ALL_KEYS, ALL_VALUES)
DEFAULT_TTL_MS = 2000


class CacheLayer:
    """
    Read-through cache over a RemoteStoreClient.

    Design principles:
    - Remote store is authoritative: writes go there first, cache second
    - No negative caching: a missing key is looked up again on every read
    - Read failures degrade to the caller's default, never raise
    - Any successful write drops both aggregate entries
    """

    def __init__(self, client: RemoteStoreClient, store: CacheStore, ttl_ms: int = DEFAULT_TTL_MS):
        if ttl_ms < 0:
            raise ValueError(f"ttl_ms must be >= 0, got {ttl_ms}")

        self.client = client
        self.store = store
        self.ttl_ms = ttl_ms
        self.ttl = ttl_ms / 1000.0

        self._lock = threading.Lock()
        self.stats = {
            "hits": 0,
            "misses": 0,
            "read_errors": 0,
            "writes": 0,
            "failed_writes": 0,
            "invalidations": 0,
            "start_time": time.time(),
        }

        logger.info(f"CacheLayer initialized (ttl={ttl_ms}ms, store={type(store).__name__})")

    def _count(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self.stats[name] += amount

    # ── Reads ────────────────────────────────────────────────────

    def read_through(self, key: str, default: Any = None, value_type: Optional[type] = None) -> Any:
        """Return the value for ``key``, fetching and caching it on a miss.

        The cache holds the stored text; it is decoded and coerced to
        ``value_type`` on every read, so one entry serves getters of different
        types and callers never share a mutable list or dict.
        """
        entry = self.store.get(key)
        if entry is not None:
            self._count("hits")
            try:
                value = read_as(entry.value, value_type)
            except ValueDecodeError as e:
                self._count("read_errors")
                logger.error(f"Cached value for key {key} is not a {_type_name(value_type)}: {e}")
                return default
            return default if value is None else value

        self._count("misses")
        logger.debug(f"Cache miss for key {key}, fetching from remote store")
        result = self.client.get_value(key)
        if result.ok:
            try:
                value = read_as(result.value, value_type)
            except ValueDecodeError as e:
                result = FetchResult.decode_error(key, str(e))
            else:
                if value is not None:
                    self.store.put(key, result.value, self.ttl)
                    logger.debug(f"Cached key {key} (ttl={self.ttl_ms}ms)")
                    return value

        return self._fall_back(result, default)

    def read_through_aggregate(self, aggregate_key: str, fetch_fn: Callable[[], FetchResult]) -> Any:
        """Read-through for the "all keys" / "all values" entries. Returns None on failure."""
        if aggregate_key not in AGGREGATE_KEYS:
            raise ValueError(f"{aggregate_key!r} is not an aggregate cache key")

        entry = self.store.get(aggregate_key)
        if entry is not None:
            self._count("hits")
            return copy.copy(entry.value)

        self._count("misses")
        logger.debug(f"Cache miss for {aggregate_key}, fetching from remote store")
        result = fetch_fn()
        if result.ok and result.value is not None:
            self.store.put(aggregate_key, result.value, self.ttl)
            logger.debug(f"Cached {aggregate_key} ({len(result.value)} items, ttl={self.ttl_ms}ms)")
            return copy.copy(result.value)

        return self._fall_back(result, None)

    def exists(self, key: str) -> bool:
        """True when a cached read of ``key`` yields a value. As stale as any other read."""
        return self.read_through(key) is not None

    def _fall_back(self, result: FetchResult, default: Any) -> Any:
        label = result.key or "aggregate query"
        if result.outcome is Outcome.NOT_FOUND:
            logger.debug(f"Unable to find config value with key {label}")
        elif result.outcome is Outcome.FOUND:
            logger.debug(f"Config value for {label} is null")
        else:
            self._count("read_errors")
            logger.error(f"Error reading {label} ({result.outcome.value}): {result.error}")
        return default

    # ── Writes ───────────────────────────────────────────────────

    def write_through(self, key: str, value: Any) -> WriteResult:
        """Write to the remote store, then re-seed ``key`` and drop the aggregates.

        A value JSON can't encode raises TypeError before anything is sent.
        A failed write leaves every cache entry as it was.
        """
        text = encode_value(value)
        result = self.client.put_value(key, value)
        if not result.success:
            self._count("failed_writes")
            logger.warning(f"Write to key {key} failed: {result.message}")
            return result

        self.store.put(key, text, self.ttl)
        self._invalidate_aggregates()
        self._count("writes")
        logger.debug(f"Wrote key {key} and cleared aggregate entries")
        return result

    def _invalidate_aggregates(self) -> None:
        for aggregate_key in AGGREGATE_KEYS:
            if self.store.remove(aggregate_key):
                self._count("invalidations")

    def invalidate(self, key: str = None) -> int:
        """Drop one entry, or every entry when ``key`` is None. Returns how many went."""
        if key is None:
            cleared = self.store.clear()
        else:
            cleared = 1 if self.store.remove(key) else 0
        if cleared:
            self._count("invalidations", cleared)
            logger.info(f"Invalidated {cleared} cache entries ({key or 'all'})")
        return cleared

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            stats = dict(self.stats)
        total_reads = stats["hits"] + stats["misses"]
        hit_rate = (stats["hits"] / total_reads * 100) if total_reads > 0 else 0

        return {
            "hits": stats["hits"],
            "misses": stats["misses"],
            "hit_rate_percent": round(hit_rate, 1),
            "total_reads": total_reads,
            "read_errors": stats["read_errors"],
            "writes": stats["writes"],
            "failed_writes": stats["failed_writes"],
            "invalidations": stats["invalidations"],
            "cache_entries": len(self.store),
            "ttl_ms": self.ttl_ms,
            "uptime_seconds": int(time.time() - stats["start_time"]),
        }


def _type_name(value_type: Optional[type]) -> str:
    return value_type.__name__ if value_type is not None else "value"
