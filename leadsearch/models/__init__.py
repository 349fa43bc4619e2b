"""
Pydantic models shared by the search, cache and route layers
"""

from .lead import LeadStatus, BusinessStatus, PriceLevel, LeadSummary, LeadStatusUpdate, LeadEnrichRequest
from .search import (
    SearchFilter,
    Pagination,
    SortSpec,
    SearchRequest,
    IndexDescriptor,
    PlanCheckResult,
    LeadPage,
    PaginationInfo,
    ExplainChecks,
    QueryPlan,
    SearchResult,
    CacheInfo,
    SearchResponse,
)

__all__ = [
    "LeadStatus",
    "BusinessStatus",
    "PriceLevel",
    "LeadSummary",
    "LeadStatusUpdate",
    "LeadEnrichRequest",
    "SearchFilter",
    "Pagination",
    "SortSpec",
    "SearchRequest",
    "IndexDescriptor",
    "PlanCheckResult",
    "LeadPage",
    "PaginationInfo",
    "ExplainChecks",
    "QueryPlan",
    "SearchResult",
    "CacheInfo",
    "SearchResponse",
]
