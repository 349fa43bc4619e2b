"""
Search cache invalidation on lead mutations
"""
import functools
import logging
from enum import Enum
from typing import Any, Callable, Optional

from ..cache.keys import filters_from_key
from ..cache.store import SearchCacheStore
from ..errors import LeadReloadError

logger = logging.getLogger(__name__)


class MutationKind(str, Enum):
    STATUS_UPDATE = "status_update"
    SOFT_DELETE = "soft_delete"
    ENRICH = "enrich"


# Mutations that only change a lead's status column
STATUS_ONLY_MUTATIONS = frozenset({MutationKind.STATUS_UPDATE, MutationKind.SOFT_DELETE})


def depends_on_status(key: str) -> bool:
    """True for pages filtered by status, unfiltered pages, and keys we cannot parse"""
    filters = filters_from_key(key)
    if filters is None:
        return True
    return not filters or "status" in filters


class SearchCacheInvalidator:
    """Maps committed lead mutations onto cache evictions"""

    def __init__(self, cache_store: Optional[SearchCacheStore]):
        self.cache = cache_store

    def on_mutation(self, kind: Any, lead_id: str) -> int:
        """
        Evict cache entries a committed mutation could have made stale

        Status-only mutations evict pages whose membership can depend on
        status, plus every page showing the lead. Anything else flushes.
        """
        if self.cache is None:
            return 0

        try:
            kind = MutationKind(kind)
        except ValueError:
            logger.warning(f"Unknown mutation kind '{kind}' - flushing search cache")
            kind = None

        if kind in STATUS_ONLY_MUTATIONS:
            removed = self.cache.invalidate(depends_on_status)
            removed += self.cache.invalidate_lead(lead_id)
        else:
            removed = self.cache.invalidate_all()

        logger.info(f"Invalidated {removed} search cache entries after {kind.value if kind else 'mutation'} of lead {lead_id}")
        return removed


def invalidates_search_cache(kind: MutationKind):
    """
    Decorator for lead service mutations
    Runs the invalidation hook once the wrapped mutation has committed,
    including when only the read-back after the commit failed; a mutation
    that raises before committing leaves the cache untouched
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(self, lead_id, *args, **kwargs) -> Any:
            try:
                result = func(self, lead_id, *args, **kwargs)
            except LeadReloadError:
                self.invalidator.on_mutation(kind, lead_id)
                raise
            self.invalidator.on_mutation(kind, lead_id)
            return result
        return wrapper
    return decorator
