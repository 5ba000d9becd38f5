"""
Settings Cache Layer
Read-through TTL caching with write-triggered invalidation of aggregate views
"""

from .layer import ALL_KEYS, ALL_VALUES, DEFAULT_TTL_MS, CacheLayer
from .store import CacheEntry, CacheStore, MemoryCacheStore, NullCacheStore

__all__ = [
    'CacheLayer', 'CacheEntry', 'CacheStore', 'MemoryCacheStore', 'NullCacheStore',
    'ALL_KEYS', 'ALL_VALUES', 'DEFAULT_TTL_MS',
]
