"""
Search module for lead search
Normalization, plan checking and the cache-first orchestrator
"""

from .normalizer import FilterNormalizer, normalize, decode_search_input
from .planner import check_plan
from .indexes import DEFAULT_INDEX_CATALOG
from .invalidation import MutationKind, SearchCacheInvalidator, invalidates_search_cache
from .engine import LeadSearchEngine, build_search_result

__all__ = [
    "FilterNormalizer",
    "normalize",
    "decode_search_input",
    "check_plan",
    "DEFAULT_INDEX_CATALOG",
    "MutationKind",
    "SearchCacheInvalidator",
    "invalidates_search_cache",
    "LeadSearchEngine",
    "build_search_result",
]
