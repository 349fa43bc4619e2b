"""
Redis-backed search result store
Shares cached pages across workers; single-flight stays per process
"""
import json
import math
import time
import logging
from typing import Any, Callable, Dict, List, Optional, Type

import redis
from pydantic import BaseModel

from .config import CacheConfig
from .store import SearchCacheStore, CacheEntry, KeyPredicate
from ..errors import CacheUnavailableError
from ..models.search import SearchResult

logger = logging.getLogger(__name__)


class RedisCacheStore(SearchCacheStore):
    """
    Search cache store on Redis

    Entries are JSON payloads written with SETEX so Redis enforces the TTL.
    A sorted set scored by insertion time tracks LRU order for the entry
    bound, and one set per lead id lists the keys whose page contains it.

    Every invalidation INCRs a generation counter shared by all workers.
    A computed page is written under WATCH on that counter and dropped if
    it moved since the computation began.
    """

    backend = "redis"
    conditional_writes = True

    def __init__(
        self,
        redis_client: redis.Redis,
        max_entries: int = CacheConfig.MAX_ENTRIES,
        default_ttl: float = CacheConfig.SEARCH_RESULTS_TTL,
        value_model: Type[BaseModel] = SearchResult,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(max_entries=max_entries, default_ttl=default_ttl, clock=clock)
        self.redis_client = redis_client
        self.config = CacheConfig()
        self.value_model = value_model

    def _lead_index_key(self, lead_id: str) -> str:
        return f"{self.config.get_key_prefix('lead_index')}{lead_id}"

    @staticmethod
    def _text(value: Any) -> str:
        return value.decode("utf-8") if isinstance(value, bytes) else str(value)

    def _serialize_entry(self, entry: CacheEntry) -> str:
        value = entry.value.model_dump(mode="json") if isinstance(entry.value, BaseModel) else entry.value
        return json.dumps({
            "value": value,
            "inserted_at": entry.inserted_at,
            "ttl": entry.ttl,
            "lead_ids": sorted(entry.lead_ids),
        }, default=str)

    def _deserialize_entry(self, key: str, data: Any) -> CacheEntry:
        payload = json.loads(data)
        return CacheEntry(
            key=key,
            value=self.value_model.model_validate(payload["value"]),
            inserted_at=float(payload["inserted_at"]),
            ttl=float(payload["ttl"]),
            lead_ids=frozenset(payload.get("lead_ids", [])),
        )

    def _read(self, key: str) -> Optional[CacheEntry]:
        try:
            data = self.redis_client.get(key)
        except redis.RedisError as e:
            logger.error(f"Cache GET error for {key}: {e}")
            raise CacheUnavailableError("Search cache is unreachable", {"backend": self.backend}) from e

        if data is None:
            return None

        try:
            entry = self._deserialize_entry(key, data)
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Cache GET corrupted entry for {key}: {e}")
            self._discard(key)
            raise CacheUnavailableError("Search cache returned an unreadable entry", {"backend": self.backend}) from e

        if entry.is_expired(self._clock()):
            return None

        try:
            self.redis_client.zadd(self.config.LRU_KEY, {key: self._clock()})
        except redis.RedisError as e:
            logger.warning(f"Cache LRU touch failed for {key}: {e}")
        return entry

    def _generation_value(self, raw: Any) -> int:
        return int(self._text(raw)) if raw is not None else 0

    def _snapshot_generation(self) -> Optional[int]:
        try:
            return self._generation_value(self.redis_client.get(self.config.GENERATION_KEY))
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Cache generation read failed: {e}")
            return None

    def _bump_generation(self) -> None:
        try:
            self.redis_client.incr(self.config.GENERATION_KEY)
        except redis.RedisError as e:
            raise CacheUnavailableError("Search cache generation update failed", {"backend": self.backend}) from e

    def _write(self, entry: CacheEntry, token: Any) -> bool:
        if token is None:
            return False

        ttl_seconds = max(1, int(math.ceil(entry.ttl)))
        try:
            with self.redis_client.pipeline() as pipe:
                pipe.watch(self.config.GENERATION_KEY)
                if self._generation_value(pipe.get(self.config.GENERATION_KEY)) != token:
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.setex(entry.key, ttl_seconds, self._serialize_entry(entry))
                pipe.zadd(self.config.LRU_KEY, {entry.key: entry.inserted_at})
                for lead_id in entry.lead_ids:
                    index_key = self._lead_index_key(lead_id)
                    pipe.sadd(index_key, entry.key)
                    pipe.expire(index_key, ttl_seconds)
                pipe.execute()
        except redis.WatchError:
            return False
        except (redis.RedisError, ValueError) as e:
            raise CacheUnavailableError("Search cache write failed", {"backend": self.backend}) from e

        try:
            self._enforce_max_entries()
        except redis.RedisError as e:
            logger.warning(f"Cache LRU trim failed: {e}")
        return True

    def _enforce_max_entries(self) -> None:
        excess = self.redis_client.zcard(self.config.LRU_KEY) - self.max_entries
        if excess <= 0:
            return
        evicted = [self._text(member) for member, _ in self.redis_client.zpopmin(self.config.LRU_KEY, excess)]
        if evicted:
            self.redis_client.delete(*evicted)
            with self._lock:
                self._evictions += len(evicted)
            logger.debug(f"Cache EVICT: {len(evicted)} least recently used entries")

    def _delete_keys(self, keys: List[str]) -> int:
        if not keys:
            return 0
        deleted = self.redis_client.delete(*keys)
        self.redis_client.zrem(self.config.LRU_KEY, *keys)
        return int(deleted or 0)

    def _delete_matching(self, predicate: KeyPredicate) -> int:
        try:
            keys = [
                key for key in (self._text(raw) for raw in self.redis_client.scan_iter(match=f"{self.config.SEARCH_PREFIX}*"))
                if predicate(key)
            ]
            return self._delete_keys(keys)
        except redis.RedisError as e:
            raise CacheUnavailableError("Search cache invalidation failed", {"backend": self.backend}) from e

    def _delete_for_lead(self, lead_id: str) -> int:
        index_key = self._lead_index_key(lead_id)
        try:
            keys = [self._text(member) for member in self.redis_client.smembers(index_key)]
            removed = self._delete_keys(keys)
            self.redis_client.delete(index_key)
            return removed
        except redis.RedisError as e:
            raise CacheUnavailableError("Search cache invalidation failed", {"backend": self.backend}) from e

    def _clear(self) -> int:
        try:
            keys = [self._text(raw) for raw in self.redis_client.scan_iter(match=f"{self.config.SEARCH_PREFIX}*")]
            removed = self._delete_keys(keys)
            meta_keys = [self._text(raw) for raw in self.redis_client.scan_iter(match=f"{self.config.META_PREFIX}*")]
            if meta_keys:
                self.redis_client.delete(*meta_keys)
            return removed
        except redis.RedisError as e:
            raise CacheUnavailableError("Search cache flush failed", {"backend": self.backend}) from e

    def _size(self) -> int:
        try:
            return int(self.redis_client.zcard(self.config.LRU_KEY) or 0)
        except redis.RedisError as e:
            raise CacheUnavailableError("Search cache is unreachable", {"backend": self.backend}) from e

    def _discard(self, key: str) -> None:
        try:
            self._delete_keys([key])
        except redis.RedisError as e:
            logger.warning(f"Cache DELETE error for {key}: {e}")

    def health_check(self) -> Dict[str, Any]:
        """Check cache health and return status"""
        try:
            test_key = self.config.HEALTH_CHECK_KEY
            self.redis_client.setex(test_key, 10, "test")
            result = self.redis_client.get(test_key)
            self.redis_client.delete(test_key)

            info = self.redis_client.info()

            return {
                "status": "healthy" if self._text(result) == "test" else "error",
                "backend": self.backend,
                "redis_available": True,
                "entries": self._size(),
                "connected_clients": info.get("connected_clients", 0),
                "used_memory_human": info.get("used_memory_human", "unknown"),
            }
        except (redis.RedisError, CacheUnavailableError) as e:
            logger.error(f"Cache health check failed: {e}")
            return {
                "status": "error",
                "backend": self.backend,
                "redis_available": False,
                "error": str(e),
            }
