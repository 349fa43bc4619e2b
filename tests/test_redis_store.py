"""
Unit tests for the Redis-backed search cache store
"""
import json
import threading
from unittest.mock import MagicMock, Mock

import fakeredis
import pytest
import redis

from leadsearch.cache.config import CacheConfig
from leadsearch.cache.redis_store import RedisCacheStore
from leadsearch.errors import CacheUnavailableError
from leadsearch.models.lead import LeadSummary
from leadsearch.models.search import LeadPage, PlanCheckResult, SearchResult
from leadsearch.search.engine import build_search_result
from leadsearch.search.normalizer import normalize


def make_result(*lead_ids) -> SearchResult:
    page = LeadPage(rows=[LeadSummary(id=lead_id, business_name=f"Lead {lead_id}") for lead_id in lead_ids], total=len(lead_ids))
    return build_search_result(normalize({}), page, PlanCheckResult(uses_indexed_filter=True))


class TestRedisCacheStore:
    """Test Redis cache store behaviour against a mock client"""

    @pytest.fixture
    def mock_redis(self):
        """Mock Redis client"""
        mock_client = Mock()
        mock_client.get.return_value = None
        mock_client.delete.return_value = 1
        mock_client.zcard.return_value = 0
        mock_client.zpopmin.return_value = []
        mock_client.scan_iter.return_value = iter([])
        mock_client.smembers.return_value = set()
        mock_client.info.return_value = {"connected_clients": 1, "used_memory_human": "1M"}
        pipe = MagicMock()
        pipe.__enter__.return_value = pipe
        pipe.get.return_value = None
        mock_client.pipeline.return_value = pipe
        return mock_client

    @pytest.fixture
    def store(self, mock_redis):
        return RedisCacheStore(mock_redis, max_entries=3, default_ttl=300, clock=lambda: 1000.0)

    def test_miss_computes_and_writes(self, store, mock_redis):
        result = make_result("a", "b")

        value, hit = store.get_or_compute("leads:search:k", None, lambda: result)

        assert hit is False
        assert value is result
        pipe = mock_redis.pipeline.return_value
        key, ttl, payload = pipe.setex.call_args[0]
        assert key == "leads:search:k"
        assert ttl == 300
        stored = json.loads(payload)
        assert stored["inserted_at"] == 1000.0
        assert stored["lead_ids"] == ["a", "b"]
        pipe.zadd.assert_called_with(CacheConfig.LRU_KEY, {"leads:search:k": 1000.0})
        pipe.sadd.assert_any_call(f"{CacheConfig.LEAD_INDEX_PREFIX}a", "leads:search:k")
        pipe.execute.assert_called_once()

    def test_hit_deserializes_payload(self, store, mock_redis):
        store.get_or_compute("leads:search:k", None, lambda: make_result("a"))
        payload = mock_redis.pipeline.return_value.setex.call_args[0][2]
        mock_redis.get.return_value = payload

        value, hit = store.get_or_compute("leads:search:k", None, lambda: pytest.fail("should not compute"))

        assert hit is True
        assert isinstance(value, SearchResult)
        assert value.lead_ids() == ["a"]
        assert value.pagination.total == 1

    def test_read_error_raises_cache_unavailable(self, store, mock_redis):
        mock_redis.get.side_effect = redis.ConnectionError("refused")

        with pytest.raises(CacheUnavailableError):
            store.get_or_compute("leads:search:k", None, lambda: make_result())

    def test_write_error_still_returns_value(self, store, mock_redis):
        mock_redis.pipeline.return_value.execute.side_effect = redis.ConnectionError("refused")
        result = make_result("a")

        value, hit = store.get_or_compute("leads:search:k", None, lambda: result)

        assert value is result
        assert hit is False

    def test_corrupted_entry_is_discarded(self, store, mock_redis):
        mock_redis.get.return_value = "{not json"

        with pytest.raises(CacheUnavailableError):
            store.get("leads:search:k")
        mock_redis.delete.assert_called_with("leads:search:k")

    def test_expired_payload_is_a_miss(self, mock_redis):
        store = RedisCacheStore(mock_redis, default_ttl=300, clock=lambda: 5000.0)
        mock_redis.get.return_value = json.dumps({
            "value": make_result().model_dump(mode="json"),
            "inserted_at": 1000.0,
            "ttl": 300,
            "lead_ids": [],
        })

        assert store.get("leads:search:k") is None

    def test_lru_bound_trims_oldest(self, store, mock_redis):
        mock_redis.zcard.return_value = 5
        mock_redis.zpopmin.return_value = [("leads:search:old1", 1.0), ("leads:search:old2", 2.0)]

        store.get_or_compute("leads:search:k", None, lambda: make_result())

        mock_redis.zpopmin.assert_called_with(CacheConfig.LRU_KEY, 2)
        mock_redis.delete.assert_any_call("leads:search:old1", "leads:search:old2")
        assert store.stats()["evictions"] == 2

    def test_invalidate_predicate_scans_search_keys(self, store, mock_redis):
        mock_redis.scan_iter.return_value = iter(["leads:search:a", "leads:search:b"])
        mock_redis.delete.return_value = 1

        removed = store.invalidate(lambda key: key.endswith(":b"))

        mock_redis.scan_iter.assert_called_with(match="leads:search:*")
        mock_redis.delete.assert_called_with("leads:search:b")
        mock_redis.zrem.assert_called_with(CacheConfig.LRU_KEY, "leads:search:b")
        assert removed == 1

    def test_invalidate_lead_reads_reverse_index(self, store, mock_redis):
        mock_redis.smembers.return_value = {"leads:search:a"}

        store.invalidate_lead("lead-7")

        mock_redis.smembers.assert_called_with(f"{CacheConfig.LEAD_INDEX_PREFIX}lead-7")
        mock_redis.delete.assert_any_call("leads:search:a")
        mock_redis.delete.assert_any_call(f"{CacheConfig.LEAD_INDEX_PREFIX}lead-7")

    def test_invalidation_error_returns_zero(self, store, mock_redis):
        mock_redis.scan_iter.side_effect = redis.ConnectionError("refused")
        assert store.invalidate(lambda key: True) == 0

    def test_health_check(self, store, mock_redis):
        mock_redis.get.return_value = "test"

        health = store.health_check()

        assert health["status"] == "healthy"
        assert health["backend"] == "redis"
        assert health["redis_available"] is True

    def test_health_check_error(self, store, mock_redis):
        mock_redis.setex.side_effect = redis.ConnectionError("refused")

        health = store.health_check()

        assert health["status"] == "error"
        assert health["redis_available"] is False

    def test_write_dropped_when_generation_moved(self, store, mock_redis):
        pipe = mock_redis.pipeline.return_value
        pipe.get.return_value = b"4"
        result = make_result("a")

        value, hit = store.get_or_compute("leads:search:k", None, lambda: result)

        assert value is result
        assert hit is False
        pipe.watch.assert_called_with(CacheConfig.GENERATION_KEY)
        pipe.setex.assert_not_called()

    def test_watch_conflict_drops_write(self, store, mock_redis):
        mock_redis.pipeline.return_value.execute.side_effect = redis.WatchError("generation moved")
        result = make_result("a")

        value, hit = store.get_or_compute("leads:search:k", None, lambda: result)

        assert value is result
        mock_redis.zcard.assert_not_called()

    def test_invalidation_bumps_shared_generation(self, store, mock_redis):
        store.invalidate(lambda key: True)
        store.invalidate_lead("lead-1")
        store.invalidate_all()

        assert mock_redis.incr.call_count == 3
        mock_redis.incr.assert_called_with(CacheConfig.GENERATION_KEY)

    def test_generation_bump_failure_flushes_on_next_access(self, store, mock_redis):
        mock_redis.incr.side_effect = redis.ConnectionError("refused")
        assert store.invalidate(lambda key: True) == 0

        mock_redis.incr.side_effect = None
        store.get("leads:search:k")

        mock_redis.incr.assert_called_with(CacheConfig.GENERATION_KEY)
        mock_redis.scan_iter.assert_any_call(match=f"{CacheConfig.SEARCH_PREFIX}*")


class TestSharedRedisAcrossWorkers:
    """Two stores on one Redis server behave like two worker processes"""

    KEY = "leads:search:page:1:limit:20:sort:created_at_desc:filters:{}"

    @pytest.fixture
    def server(self):
        return fakeredis.FakeServer()

    def make_store(self, server):
        return RedisCacheStore(fakeredis.FakeRedis(server=server), max_entries=100, default_ttl=300)

    def test_page_computed_by_one_worker_is_served_to_another(self, server):
        worker_a = self.make_store(server)
        worker_b = self.make_store(server)

        worker_b.get_or_compute(self.KEY, None, lambda: make_result("L1"))
        value, hit = worker_a.get_or_compute(self.KEY, None, lambda: pytest.fail("should not compute"))

        assert hit is True
        assert value.lead_ids() == ["L1"]

    def test_invalidation_in_one_worker_drops_page_computing_in_another(self, server):
        worker_a = self.make_store(server)
        worker_b = self.make_store(server)
        started = threading.Event()
        release = threading.Event()
        outcome = {}

        def slow_compute():
            started.set()
            release.wait(5)
            return make_result("L1")

        def run_worker_b():
            outcome["value"], outcome["hit"] = worker_b.get_or_compute(self.KEY, None, slow_compute)

        thread = threading.Thread(target=run_worker_b)
        thread.start()
        assert started.wait(5)

        worker_a.invalidate(lambda key: True)
        release.set()
        thread.join(5)

        # Worker B still answers its own caller, but the page never lands in Redis
        assert outcome["hit"] is False
        assert worker_a.get(self.KEY) is None
        value, hit = worker_a.get_or_compute(self.KEY, None, lambda: make_result())
        assert hit is False
        assert value.lead_ids() == []
