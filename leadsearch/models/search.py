"""
Search request, plan and result models

Request-side models are frozen: once the normalizer builds a SearchRequest it
is the canonical unit for cache key derivation and for the storage query.
Result-side models serialize with the camelCase names existing callers expect.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any, Tuple

from .lead import LeadStatus, BusinessStatus, PriceLevel, LeadSummary

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
# Keeps OFFSET inside a 64-bit integer at the largest limit
MAX_PAGE = 10_000_000
DEFAULT_SORT_FIELD = "created_at"
DEFAULT_SORT_DIRECTION = "desc"

class SearchFilter(BaseModel):
    """Canonical filter set; unset keys are None and never reach the cache key"""
    city: Optional[str] = None
    state: Optional[str] = None
    business_category: Optional[str] = None
    status: Optional[LeadStatus] = None
    has_website: Optional[bool] = None
    has_phone: Optional[bool] = None
    pure_service_area_business: Optional[bool] = None
    business_status: Optional[BusinessStatus] = None
    price_level: Optional[PriceLevel] = None
    min_rating: Optional[float] = None
    max_rating: Optional[float] = None
    created_after: Optional[str] = None
    created_before: Optional[str] = None
    business_name_contains: Optional[str] = None

    model_config = {"frozen": True, "extra": "forbid"}

    def active(self) -> Dict[str, Any]:
        """Set filters as JSON-ready values, keyed by filter name"""
        return self.model_dump(mode="json", exclude_none=True)

    def is_empty(self) -> bool:
        return not self.active()

class Pagination(BaseModel):
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    model_config = {"frozen": True}

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

class SortSpec(BaseModel):
    field: str = DEFAULT_SORT_FIELD
    direction: str = DEFAULT_SORT_DIRECTION

    model_config = {"frozen": True}

    @property
    def token(self) -> str:
        return f"{self.field}_{self.direction}"

class SearchRequest(BaseModel):
    filter: SearchFilter = SearchFilter()
    pagination: Pagination = Pagination()
    sort: SortSpec = SortSpec()

    model_config = {"frozen": True}

    def to_raw(self) -> Dict[str, Any]:
        """Re-serialize into the flat shape accepted as raw search input"""
        raw = dict(self.filter.active())
        raw.update({
            "page": self.pagination.page,
            "limit": self.pagination.limit,
            "sort_by": self.sort.field,
            "sort_order": self.sort.direction,
        })
        return raw

class IndexDescriptor(BaseModel):
    """A declared (possibly composite) index on the leads table"""
    name: str
    columns: Tuple[str, ...]

    model_config = {"frozen": True}

class PlanCheckResult(BaseModel):
    indexed_filters: List[str] = []
    uses_indexed_filter: bool = False
    unindexed_filters: List[str] = []

class LeadPage(BaseModel):
    """One page of rows from the storage collaborator plus the exact match count"""
    rows: List[LeadSummary] = []
    total: int = 0

class PaginationInfo(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(alias="totalPages")

    model_config = {"populate_by_name": True}

class ExplainChecks(BaseModel):
    uses_indexed_filter: bool = Field(alias="usesIndexedFilter")
    unindexed_filters: List[str] = Field(default=[], alias="unindexedFilters")
    selected_field_count: int = Field(default=0, alias="selectedFieldCount")

    model_config = {"populate_by_name": True}

class QueryPlan(BaseModel):
    indexed_filters: List[str] = Field(default=[], alias="indexedFilters")
    explain_checks: ExplainChecks = Field(alias="explainChecks")

    model_config = {"populate_by_name": True}

class SearchResult(BaseModel):
    """Cached unit: everything in the response except the cache annotation"""
    leads: List[LeadSummary] = []
    pagination: PaginationInfo
    query_plan: QueryPlan = Field(alias="queryPlan")

    model_config = {"populate_by_name": True}

    def lead_ids(self) -> List[str]:
        return [lead.id for lead in self.leads]

class CacheInfo(BaseModel):
    hit: bool
    key: str

class SearchResponse(SearchResult):
    cache: CacheInfo

    @classmethod
    def from_result(cls, result: SearchResult, hit: bool, key: str) -> "SearchResponse":
        return cls(
            leads=result.leads,
            pagination=result.pagination,
            query_plan=result.query_plan,
            cache=CacheInfo(hit=hit, key=key),
        )

    def to_envelope(self) -> Dict[str, Any]:
        """Response body in the shape route callers consume"""
        return self.model_dump(mode="json", by_alias=True)
