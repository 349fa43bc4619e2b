"""
Search result cache store with single-flight computation

The base class owns concurrency: one in-flight computation per key, a
generation counter that keeps computations started before an invalidation
from writing stale pages back, and bookkeeping stats. Backends implement the
storage primitives (_read, _write, _delete_matching, _delete_for_lead, _clear).
"""
import time
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional, Set, Tuple

from cachetools import LRUCache
from pydantic import BaseModel

from .config import CacheConfig
from ..errors import CacheUnavailableError

logger = logging.getLogger(__name__)

KeyPredicate = Callable[[str], bool]


class CacheEntry(BaseModel):
    """A cached search result; `in_flight` marks a key whose computation is still running"""
    key: str
    value: Any = None
    inserted_at: float = 0.0
    ttl: float = 0.0
    in_flight: bool = False
    lead_ids: FrozenSet[str] = frozenset()

    model_config = {"frozen": True}

    def is_expired(self, now: float) -> bool:
        return now - self.inserted_at >= self.ttl


class _Flight:
    __slots__ = ("future", "generation", "detached", "token")

    def __init__(self, generation: int):
        self.future: Future = Future()
        self.generation = generation
        self.detached = False
        # Backend generation observed before computing; None if it could not be read
        self.token: Any = None


def _lead_ids_of(value: Any) -> FrozenSet[str]:
    lead_ids = getattr(value, "lead_ids", None)
    if callable(lead_ids):
        return frozenset(str(lead_id) for lead_id in lead_ids())
    return frozenset()


class SearchCacheStore:
    """Keyed result store with TTL, LRU bound and at-most-one computation per key"""

    backend = "base"
    # Backends whose _write re-checks a shared generation atomically write outside the store lock
    conditional_writes = False

    def __init__(
        self,
        max_entries: int = CacheConfig.MAX_ENTRIES,
        default_ttl: float = CacheConfig.SEARCH_RESULTS_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self._clock = clock

        self._lock = threading.Lock()
        self._flights: Dict[str, _Flight] = {}
        self._generation = 0
        # Set when an invalidation could not reach the backend; the next read flushes first
        self._flush_pending = False

        self._hits = 0
        self._misses = 0
        self._joins = 0
        self._computations = 0
        self._evictions = 0
        self._invalidations = 0

    # Backend primitives

    def _read(self, key: str) -> Optional[CacheEntry]:
        raise NotImplementedError

    def _write(self, entry: CacheEntry, token: Any) -> bool:
        """Store entry; False when token shows an invalidation happened since the flight began"""
        raise NotImplementedError

    def _snapshot_generation(self) -> Any:
        return None

    def _bump_generation(self) -> None:
        pass

    def _delete_matching(self, predicate: KeyPredicate) -> int:
        raise NotImplementedError

    def _delete_for_lead(self, lead_id: str) -> int:
        raise NotImplementedError

    def _clear(self) -> int:
        raise NotImplementedError

    def _size(self) -> int:
        raise NotImplementedError

    # Public API

    def get(self, key: str) -> Optional[CacheEntry]:
        """Live entry for key, an in-flight marker, or None"""
        self._flush_if_pending()
        entry = self._read(key)
        if entry is not None:
            return entry

        with self._lock:
            if key in self._flights:
                return CacheEntry(key=key, in_flight=True)
        return None

    def get_or_compute(self, key: str, ttl: Optional[float], compute: Callable[[], Any]) -> Tuple[Any, bool]:
        """
        Return the cached value for key, computing it at most once concurrently

        Args:
            key: Cache key
            ttl: Lifetime of a freshly computed value, defaults to the store TTL
            compute: Zero-argument callable producing the value

        Returns:
            (value, hit) where hit is False only for the caller that ran compute

        Raises:
            CacheUnavailableError: the backend could not be read
            Any exception raised by compute, for the owner and every waiter
        """
        ttl = self.default_ttl if ttl is None else ttl
        self._flush_if_pending()

        entry = self._read(key)
        if entry is not None:
            self._record_hit(key)
            return entry.value, True

        with self._lock:
            flight = self._flights.get(key)
            owner = flight is None
            if owner:
                flight = _Flight(self._generation)
                self._flights[key] = flight
            else:
                self._joins += 1

        if not owner:
            logger.debug(f"Cache JOIN: {key}")
            return flight.future.result(), True

        try:
            flight.token = self._snapshot_generation()

            # Another owner may have stored the value between our read and taking the flight
            entry = self._read(key)
            if entry is not None:
                self._record_hit(key)
                flight.future.set_result(entry.value)
                return entry.value, True

            with self._lock:
                self._misses += 1
                self._computations += 1
            logger.debug(f"Cache MISS: {key}")

            value = compute()
            self._store(key, ttl, value, flight)
            flight.future.set_result(value)
            return value, False
        except BaseException as e:
            if not flight.future.done():
                flight.future.set_exception(e)
            raise
        finally:
            with self._lock:
                if self._flights.get(key) is flight:
                    del self._flights[key]

    def invalidate(self, predicate: KeyPredicate) -> int:
        """Evict every entry whose key satisfies predicate"""
        with self._lock:
            self._generation += 1
            self._invalidations += 1
            self._detach(key for key in list(self._flights) if predicate(key))
        return self._run_invalidation("predicate", lambda: self._delete_matching(predicate))

    def invalidate_lead(self, lead_id: str) -> int:
        """Evict every entry whose cached page contains lead_id"""
        with self._lock:
            self._generation += 1
            self._invalidations += 1
            # In-flight pages have unknown contents
            self._detach(list(self._flights))
        return self._run_invalidation(f"lead {lead_id}", lambda: self._delete_for_lead(str(lead_id)))

    def invalidate_all(self) -> int:
        with self._lock:
            self._generation += 1
            self._invalidations += 1
            self._detach(list(self._flights))
        return self._run_invalidation("all", self._clear)

    def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "backend": self.backend, "entries": self._size()}

    def stats(self) -> Dict[str, Any]:
        try:
            size = self._size()
        except CacheUnavailableError:
            size = None
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "backend": self.backend,
                "size": size,
                "hits": self._hits,
                "misses": self._misses,
                "joins": self._joins,
                "computations": self._computations,
                "evictions": self._evictions,
                "invalidations": self._invalidations,
                "in_flight": len(self._flights),
                "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
                "max_entries": self.max_entries,
                "ttl_seconds": self.default_ttl,
            }

    # Internals

    def _record_hit(self, key: str) -> None:
        with self._lock:
            self._hits += 1
        logger.debug(f"Cache HIT: {key}")

    def _store(self, key: str, ttl: float, value: Any, flight: _Flight) -> None:
        entry = CacheEntry(
            key=key,
            value=value,
            inserted_at=self._clock(),
            ttl=ttl,
            lead_ids=_lead_ids_of(value),
        )
        if self.conditional_writes:
            with self._lock:
                stale = self._is_stale(flight)
            written = not stale and self._attempt_write(entry, flight)
        else:
            # Held across the write so an invalidation cannot slip between the check and the write
            with self._lock:
                written = not self._is_stale(flight) and self._attempt_write(entry, flight)
        if written:
            logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
        else:
            logger.debug(f"Cache SKIP: {key} not stored")

    def _is_stale(self, flight: _Flight) -> bool:
        return flight.detached or flight.generation != self._generation

    def _attempt_write(self, entry: CacheEntry, flight: _Flight) -> bool:
        try:
            return self._write(entry, flight.token)
        except CacheUnavailableError as e:
            logger.warning(f"Cache SET skipped for {entry.key}: {e}")
            return False

    def _detach(self, keys: Iterable[str]) -> None:
        for key in keys:
            flight = self._flights.pop(key, None)
            if flight is not None:
                flight.detached = True

    def _run_invalidation(self, scope: str, delete: Callable[[], int]) -> int:
        try:
            self._bump_generation()
            removed = delete()
        except CacheUnavailableError as e:
            logger.error(f"Cache INVALIDATE error ({scope}): {e}; flushing on next access")
            self._flush_pending = True
            return 0
        logger.info(f"Cache INVALIDATE ({scope}): {removed} entries")
        return removed

    def _flush_if_pending(self) -> None:
        if not self._flush_pending:
            return
        self._bump_generation()
        self._clear()
        self._flush_pending = False
        logger.warning("Cache flushed after a failed invalidation")


class _EvictingLRUCache(LRUCache):
    """LRUCache that reports capacity evictions"""

    def __init__(self, maxsize: int, on_evict: Callable[[str, CacheEntry], None]):
        super().__init__(maxsize=maxsize)
        self._on_evict = on_evict

    def popitem(self):
        key, entry = super().popitem()
        self._on_evict(key, entry)
        return key, entry


class MemoryCacheStore(SearchCacheStore):
    """In-process store backed by cachetools, with a lead id reverse index"""

    backend = "memory"

    def __init__(
        self,
        max_entries: int = CacheConfig.MAX_ENTRIES,
        default_ttl: float = CacheConfig.SEARCH_RESULTS_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(max_entries=max_entries, default_ttl=default_ttl, clock=clock)
        self._entries_lock = threading.RLock()
        self._entries = _EvictingLRUCache(max_entries, self._forget)
        self._lead_index: Dict[str, Set[str]] = {}

    def _read(self, key: str) -> Optional[CacheEntry]:
        with self._entries_lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                self._remove(key)
                return None
            return entry

    def _write(self, entry: CacheEntry, token: Any) -> bool:
        with self._entries_lock:
            self._remove(entry.key)
            self._entries[entry.key] = entry
            for lead_id in entry.lead_ids:
                self._lead_index.setdefault(lead_id, set()).add(entry.key)
        return True

    def _delete_matching(self, predicate: KeyPredicate) -> int:
        with self._entries_lock:
            keys = [key for key in list(self._entries.keys()) if predicate(key)]
            return sum(1 for key in keys if self._remove(key))

    def _delete_for_lead(self, lead_id: str) -> int:
        with self._entries_lock:
            keys = self._lead_index.pop(lead_id, set())
            return sum(1 for key in keys if self._remove(key))

    def _clear(self) -> int:
        with self._entries_lock:
            removed = len(self._entries)
            self._entries = _EvictingLRUCache(self.max_entries, self._forget)
            self._lead_index = {}
            return removed

    def _size(self) -> int:
        with self._entries_lock:
            return len(self._entries)

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._unindex(entry)
        return True

    def _forget(self, key: str, entry: CacheEntry) -> None:
        self._unindex(entry)
        self._evictions += 1
        logger.debug(f"Cache EVICT: {key}")

    def _unindex(self, entry: CacheEntry) -> None:
        for lead_id in entry.lead_ids:
            keys = self._lead_index.get(lead_id)
            if keys is None:
                continue
            keys.discard(entry.key)
            if not keys:
                del self._lead_index[lead_id]
