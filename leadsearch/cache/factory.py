"""
Search cache store selection
"""
import logging
from typing import Optional

import redis

from .config import CacheConfig
from .store import SearchCacheStore, MemoryCacheStore
from .redis_store import RedisCacheStore

logger = logging.getLogger(__name__)


def build_cache_store(
    redis_client: Optional[redis.Redis] = None,
    backend: Optional[str] = None,
    ttl: Optional[float] = None,
    max_entries: Optional[int] = None,
) -> Optional[SearchCacheStore]:
    """
    Build the configured cache store

    Returns None when caching is disabled; a redis backend without a client
    falls back to the in-process store.
    """
    if not CacheConfig.ENABLED:
        logger.warning("Search cache disabled by configuration")
        return None

    backend = (backend or CacheConfig.BACKEND).strip().lower()
    ttl = CacheConfig.SEARCH_RESULTS_TTL if ttl is None else ttl
    max_entries = CacheConfig.MAX_ENTRIES if max_entries is None else max_entries

    if backend == "redis":
        if redis_client is not None:
            logger.info(f"Search cache on Redis (TTL: {ttl}s, max entries: {max_entries})")
            return RedisCacheStore(redis_client, max_entries=max_entries, default_ttl=ttl)
        logger.warning("Redis not available - falling back to in-process search cache")
    elif backend != "memory":
        logger.warning(f"Unknown search cache backend '{backend}' - using in-process cache")

    logger.info(f"Search cache in process (TTL: {ttl}s, max entries: {max_entries})")
    return MemoryCacheStore(max_entries=max_entries, default_ttl=ttl)
