"""
Cache module for lead search
Keyed, TTL-bounded storage of computed search pages with single-flight
"""

from .config import CacheConfig
from .keys import derive_cache_key, filters_from_key
from .store import CacheEntry, SearchCacheStore, MemoryCacheStore
from .redis_store import RedisCacheStore
from .factory import build_cache_store

__all__ = [
    'CacheConfig',
    'CacheEntry',
    'SearchCacheStore',
    'MemoryCacheStore',
    'RedisCacheStore',
    'build_cache_store',
    'derive_cache_key',
    'filters_from_key',
]
