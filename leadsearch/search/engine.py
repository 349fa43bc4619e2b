"""
Search Orchestrator for lead search
Normalize, look up the cache, and on a miss plan-check and query storage
"""

import math
import time
import logging
from typing import Any, Dict, Optional, Sequence, Tuple

from ..cache.config import CacheConfig
from ..cache.keys import derive_cache_key
from ..cache.store import SearchCacheStore
from ..errors import CacheUnavailableError, SearchBackendError, ValidationError
from ..models.lead import LeadSummary
from ..models.search import (
    IndexDescriptor, LeadPage, PlanCheckResult, SearchRequest, SearchResult, SearchResponse,
    PaginationInfo, QueryPlan, ExplainChecks,
)
from .indexes import DEFAULT_INDEX_CATALOG
from .invalidation import SearchCacheInvalidator
from .normalizer import FilterNormalizer
from .planner import check_plan

logger = logging.getLogger(__name__)


def build_search_result(request: SearchRequest, page: LeadPage, plan: PlanCheckResult) -> SearchResult:
    limit = request.pagination.limit
    return SearchResult(
        leads=page.rows,
        pagination=PaginationInfo(
            page=request.pagination.page,
            limit=limit,
            total=page.total,
            total_pages=math.ceil(page.total / limit) if page.total else 0,
        ),
        query_plan=QueryPlan(
            indexed_filters=plan.indexed_filters,
            explain_checks=ExplainChecks(
                uses_indexed_filter=plan.uses_indexed_filter,
                unindexed_filters=plan.unindexed_filters,
                selected_field_count=len(LeadSummary.model_fields),
            ),
        ),
    )


class LeadSearchEngine:
    """
    Cache-first lead search

    `storage` is any object with `query(SearchRequest) -> LeadPage`; the
    cache store is optional and None means every call reaches storage.
    """

    def __init__(
        self,
        storage,
        cache_store: Optional[SearchCacheStore] = None,
        indexes: Optional[Sequence[IndexDescriptor]] = None,
        cache_ttl: Optional[float] = None,
        normalizer: Optional[FilterNormalizer] = None,
    ):
        self.storage = storage
        self.cache = cache_store
        self.indexes = tuple(indexes) if indexes is not None else DEFAULT_INDEX_CATALOG
        self.cache_ttl = CacheConfig.SEARCH_RESULTS_TTL if cache_ttl is None else cache_ttl
        self.normalizer = normalizer or FilterNormalizer()
        self.invalidator = SearchCacheInvalidator(cache_store)

    def search(self, raw: Any) -> SearchResponse:
        """
        Main search method with cache-first strategy

        Args:
            raw: Query params mapping, JSON body, or None

        Returns:
            SearchResponse annotated with whether this call hit the cache

        Raises:
            ValidationError: raw input is not an object at all
            SearchBackendError: storage failed; nothing is cached
        """
        start_time = time.time()

        decoded = self.normalizer.decode(raw)
        if isinstance(decoded, ValidationError):
            logger.info(f"Rejected search input: {decoded.message}")
            raise decoded
        request = decoded

        key = derive_cache_key(request)
        result, hit = self._lookup(key, request)

        search_time = time.time() - start_time
        logger.info(
            f"Search completed: {len(result.leads)} leads in {search_time:.3f}s "
            f"(cache {'HIT' if hit else 'MISS'}, total: {result.pagination.total})"
        )
        return SearchResponse.from_result(result, hit, key)

    def on_mutation(self, kind: Any, lead_id: str) -> int:
        return self.invalidator.on_mutation(kind, lead_id)

    def _lookup(self, key: str, request: SearchRequest) -> Tuple[SearchResult, bool]:
        if self.cache is None:
            return self._compute(request), False

        try:
            return self.cache.get_or_compute(key, self.cache_ttl, lambda: self._compute(request))
        except CacheUnavailableError as e:
            logger.warning(f"Search cache unavailable, querying storage directly: {e}")
            return self._compute(request), False

    def _compute(self, request: SearchRequest) -> SearchResult:
        plan = check_plan(request, self.indexes)
        if not plan.uses_indexed_filter or plan.unindexed_filters:
            logger.warning(
                f"Search shape not fully served by an index: "
                f"filters={sorted(request.filter.active())} sort={request.sort.token} "
                f"unindexed={plan.unindexed_filters}"
            )

        try:
            page = self.storage.query(request)
        except SearchBackendError:
            raise
        except Exception as e:
            logger.error(f"Search error: {e}")
            raise SearchBackendError("Failed to search leads") from e

        return build_search_result(request, page, plan)

    def get_search_stats(self) -> Dict[str, Any]:
        """Get search cache statistics"""
        if self.cache is None:
            return {"cache_health": {"status": "disabled"}, "cache_stats": None}
        return {
            "cache_health": self.cache.health_check(),
            "cache_stats": self.cache.stats(),
        }
