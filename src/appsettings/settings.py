#!/usr/bin/env python3
"""
Typed settings facade over the cached Consul K/V store.

Every getter goes through CacheLayer.read_through keyed by the literal
config key; get_all / get_all_keys use the two aggregate entries; set()
writes through and reports failure instead of dropping it.
"""

import logging
from typing import Any, Dict, List, Optional

from cache.layer import AGGREGATE_KEYS, ALL_KEYS, ALL_VALUES, CacheLayer
from cache.store import CacheStore, MemoryCacheStore, NullCacheStore
from kvstore.circuit_breaker import CircuitBreaker
from kvstore.client import ConsulKVClient, RemoteStoreClient
from kvstore.results import WriteResult

from .config import SettingsConfig, merge_env_overrides

logger = logging.getLogger(__name__)


def _check_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise ValueError("config key must be a non-empty string")
    if key in AGGREGATE_KEYS:
        raise ValueError(f"{key!r} is reserved for aggregate cache entries")


class AppSettings:
    """
    Application settings backed by a remote key-value store.

    Reads never raise on remote failures: a missing key, an unreachable
    store or a value of the wrong type all return the default. Writes
    return a WriteResult; pass ``raise_on_failure=True`` to get a
    WriteFailure instead.
    """

    def __init__(self, cache: CacheLayer):
        self.cache = cache

    @property
    def client(self) -> RemoteStoreClient:
        return self.cache.client

    def get(self, key: str, default: Any = None, value_type: Optional[type] = None) -> Any:
        _check_key(key)
        return self.cache.read_through(key, default, value_type)

    def get_string(self, key: str) -> Optional[str]:
        return self.get(key, None, str)

    def get_list(self, key: str) -> Optional[List[str]]:
        return self.get(key, None, list)

    def get_dictionary(self, key: str) -> Optional[Dict[str, str]]:
        return self.get(key, None, dict)

    def get_all(self) -> Dict[str, Optional[str]]:
        """Every key with its value as a string. Empty when the store can't be read."""
        values = self.cache.read_through_aggregate(ALL_VALUES, self.client.get_all)
        return values if values is not None else {}

    def get_all_keys(self) -> List[str]:
        keys = self.cache.read_through_aggregate(ALL_KEYS, self.client.list_keys)
        return keys if keys is not None else []

    def exists(self, key: str) -> bool:
        _check_key(key)
        return self.cache.exists(key)

    def set(self, key: str, value: Any, raise_on_failure: bool = False) -> WriteResult:
        _check_key(key)
        result = self.cache.write_through(key, value)
        if raise_on_failure:
            result.raise_for_failure()
        return result

    def get_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()


def create_settings(
    config: SettingsConfig = None,
    cache_store: CacheStore = None,
    client: RemoteStoreClient = None,
) -> AppSettings:
    """Wire client, cache store and cache layer from ``config``.

    With no ``config`` the built-in defaults apply, overridden by the
    CONSUL_* and SETTINGS_* env vars. An explicit ``cache_store`` wins over
    ``config.cache.enabled``.
    """
    if config is None:
        config = SettingsConfig.from_dict(merge_env_overrides({}))

    if client is None:
        client = ConsulKVClient(
            base_url=config.consul_url,
            token=config.token,
            timeout=config.timeout_sec,
            breaker=CircuitBreaker(
                max_failures=config.circuit_breaker.fails,
                ttl_sec=config.circuit_breaker.ttl_sec,
            ),
        )

    if cache_store is None:
        cache_store = MemoryCacheStore() if config.cache.enabled else NullCacheStore()

    return AppSettings(CacheLayer(client, cache_store, ttl_ms=config.cache.ttl_ms))


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)

    settings = create_settings()

    result = settings.set("feature.enabled", True)
    print(f"Set feature.enabled: {result.success} ({result.message})")
    print(f"feature.enabled = {settings.get('feature.enabled', False, bool)}")
    print(f"Keys: {settings.get_all_keys()}")
    print(f"Stats: {settings.get_stats()}")
