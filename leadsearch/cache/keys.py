"""
Cache key derivation for search requests

Keys stay human readable so that invalidation predicates can recover the
filter set a cached page was computed for.
"""
import json
from typing import Any, Dict, Optional

from .config import CacheConfig
from ..models.search import SearchRequest

FILTERS_MARKER = ":filters:"


def canonical_filters(request: SearchRequest) -> str:
    """Key-order independent JSON rendering of the active filters"""
    return json.dumps(request.filter.active(), sort_keys=True, separators=(",", ":"))


def derive_cache_key(request: SearchRequest, prefix: str = CacheConfig.SEARCH_PREFIX) -> str:
    return (
        f"{prefix}page:{request.pagination.page}"
        f":limit:{request.pagination.limit}"
        f":sort:{request.sort.token}"
        f"{FILTERS_MARKER}{canonical_filters(request)}"
    )


def filters_from_key(key: str) -> Optional[Dict[str, Any]]:
    """
    Recover the filter mapping embedded in a cache key

    Returns None when the key was not produced by derive_cache_key.
    """
    _, marker, encoded = key.partition(FILTERS_MARKER)
    if not marker:
        return None
    try:
        filters = json.loads(encoded)
    except ValueError:
        return None
    return filters if isinstance(filters, dict) else None
