"""
Unit tests for the cache-first search engine
"""
import threading
import time

import pytest

from leadsearch.cache.store import MemoryCacheStore
from leadsearch.errors import CacheUnavailableError, SearchBackendError, ValidationError
from leadsearch.models.lead import LeadSummary
from leadsearch.models.search import LeadPage
from leadsearch.search.engine import LeadSearchEngine
from leadsearch.search.invalidation import MutationKind


class FakeStorage:
    """Storage collaborator returning a fixed page and counting queries"""

    def __init__(self, total=3, delay=0.0):
        self.total = total
        self.delay = delay
        self.calls = 0
        self.fail = False
        self._lock = threading.Lock()

    def query(self, request):
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise ConnectionError("database unreachable")
        count = max(0, min(request.pagination.limit, self.total - request.pagination.offset))
        rows = [
            LeadSummary(id=f"lead-{request.pagination.offset + i}", business_name=f"Lead {i}")
            for i in range(count)
        ]
        return LeadPage(rows=rows, total=self.total)


class UnreachableStore(MemoryCacheStore):
    def _read(self, key):
        raise CacheUnavailableError("cache down")


class TestLeadSearchEngine:
    """Test search orchestration"""

    @pytest.fixture
    def storage(self):
        return FakeStorage()

    @pytest.fixture
    def engine(self, storage):
        return LeadSearchEngine(storage, MemoryCacheStore(max_entries=100, default_ttl=300))

    def test_miss_then_hit(self, engine, storage):
        first = engine.search({"city": "Austin"})
        second = engine.search({"city": "Austin"})

        assert first.cache.hit is False
        assert second.cache.hit is True
        assert first.cache.key == second.cache.key
        assert storage.calls == 1

    def test_equivalent_inputs_share_cache_entry(self, engine, storage):
        engine.search({"city": "Austin", "state": "tx"})
        response = engine.search({"STATE": "Texas", "city": "  AUSTIN"})

        assert response.cache.hit is True
        assert storage.calls == 1

    def test_envelope_shape(self, engine):
        envelope = engine.search({"status": "validated", "sort_by": "created_at"}).to_envelope()

        assert set(envelope) == {"leads", "pagination", "cache", "queryPlan"}
        assert envelope["pagination"] == {"page": 1, "limit": 20, "total": 3, "totalPages": 1}
        assert envelope["cache"]["hit"] is False
        assert envelope["queryPlan"]["explainChecks"]["usesIndexedFilter"] is True
        assert "idx_leads_status_created_at" in envelope["queryPlan"]["indexedFilters"]

    def test_unindexed_shape_is_annotated(self, engine):
        response = engine.search({"business_name_contains": "Acme"})
        assert response.query_plan.explain_checks.uses_indexed_filter is False

    def test_pagination_math(self):
        engine = LeadSearchEngine(FakeStorage(total=45), MemoryCacheStore())
        response = engine.search({"city": "Austin", "page": 2, "limit": 20})

        pagination = response.pagination
        assert (pagination.page, pagination.limit, pagination.total, pagination.total_pages) == (2, 20, 45, 3)
        assert len(response.leads) == 20

    def test_empty_result_has_zero_pages(self):
        engine = LeadSearchEngine(FakeStorage(total=0), MemoryCacheStore())
        assert engine.search({}).pagination.total_pages == 0

    def test_storage_failure_is_not_cached(self, engine, storage):
        storage.fail = True
        with pytest.raises(SearchBackendError):
            engine.search({"city": "Austin"})

        storage.fail = False
        response = engine.search({"city": "Austin"})

        assert response.cache.hit is False
        assert storage.calls == 2

    def test_non_object_input_raises_validation_error(self, engine, storage):
        with pytest.raises(ValidationError):
            engine.search("[1, 2]")
        assert storage.calls == 0

    def test_cache_unavailable_fails_open(self, storage):
        engine = LeadSearchEngine(storage, UnreachableStore())

        first = engine.search({"city": "Austin"})
        second = engine.search({"city": "Austin"})

        assert first.cache.hit is False
        assert second.cache.hit is False
        assert storage.calls == 2

    def test_disabled_cache_always_queries(self, storage):
        engine = LeadSearchEngine(storage, None)
        engine.search({})
        engine.search({})

        assert storage.calls == 2
        assert engine.on_mutation(MutationKind.ENRICH, "lead-0") == 0

    def test_concurrent_identical_searches_query_once(self):
        storage = FakeStorage(delay=0.2)
        engine = LeadSearchEngine(storage, MemoryCacheStore())
        barrier = threading.Barrier(10)
        responses = []

        def worker():
            barrier.wait()
            responses.append(engine.search({"city": "Austin", "limit": "10"}))

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert storage.calls == 1
        assert len(responses) == 10
        assert sum(1 for response in responses if not response.cache.hit) == 1

    def test_mutation_evicts_status_filtered_pages(self, engine, storage):
        engine.search({"status": "new"})
        engine.search({"city": "Austin"})

        engine.on_mutation(MutationKind.STATUS_UPDATE, "lead-99")

        assert engine.search({"status": "new"}).cache.hit is False
        assert engine.search({"city": "Austin"}).cache.hit is True

    def test_mutation_evicts_pages_showing_the_lead(self, engine):
        engine.search({"city": "Austin"})

        engine.on_mutation(MutationKind.SOFT_DELETE, "lead-1")

        assert engine.search({"city": "Austin"}).cache.hit is False

    def test_enrich_flushes_everything(self, engine):
        engine.search({"city": "Austin"})
        engine.search({"state": "TX"})

        engine.on_mutation(MutationKind.ENRICH, "lead-99")

        assert engine.search({"city": "Austin"}).cache.hit is False
        assert engine.search({"state": "TX"}).cache.hit is False

    def test_search_stats(self, engine):
        engine.search({})
        stats = engine.get_search_stats()

        assert stats["cache_health"]["status"] == "healthy"
        assert stats["cache_stats"]["misses"] == 1
