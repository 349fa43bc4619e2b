"""
Query plan guard

Decides, without consulting the database, which declared indexes can serve a
normalized request. A btree index is usable when its leading column carries
an equality or range predicate; with no filters at all, an index whose
leading column is the sort column can serve the ordered scan.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..models.search import IndexDescriptor, PlanCheckResult, SearchRequest

logger = logging.getLogger(__name__)

EQUALITY = "eq"
RANGE = "range"
CONTAINS = "contains"

# Filter name -> (column, predicate kind)
FILTER_COLUMNS: Dict[str, Tuple[str, str]] = {
    "city": ("city", EQUALITY),
    "state": ("state", EQUALITY),
    "business_category": ("business_category", EQUALITY),
    "status": ("status", EQUALITY),
    "has_website": ("has_website", EQUALITY),
    "has_phone": ("phone", RANGE),
    "pure_service_area_business": ("pure_service_area_business", EQUALITY),
    "business_status": ("business_status", EQUALITY),
    "price_level": ("price_level", EQUALITY),
    "min_rating": ("google_rating", RANGE),
    "max_rating": ("google_rating", RANGE),
    "created_after": ("created_at", RANGE),
    "created_before": ("created_at", RANGE),
    "business_name_contains": ("business_name", CONTAINS),
}

SARGABLE = (EQUALITY, RANGE)
_STRENGTH = {EQUALITY: 2, RANGE: 1, CONTAINS: 0}


def _column_predicates(request: SearchRequest) -> Dict[str, str]:
    """Strongest predicate kind per column across the active filters"""
    predicates: Dict[str, str] = {}
    for name in request.filter.active():
        column, kind = FILTER_COLUMNS[name]
        current = predicates.get(column)
        if current is None or _STRENGTH[kind] > _STRENGTH[current]:
            predicates[column] = kind
    return predicates


def _matched_prefix(index: IndexDescriptor, predicates: Dict[str, str], sort_field: Optional[str]) -> int:
    """
    Number of leading index columns the query can use

    Equality columns extend the prefix; a range predicate or the sort column
    ends it.
    """
    width = 0
    for column in index.columns:
        kind = predicates.get(column)
        if kind == EQUALITY:
            width += 1
            continue
        if kind == RANGE or column == sort_field:
            width += 1
        break
    return width


def check_plan(request: SearchRequest, indexes: Sequence[IndexDescriptor]) -> PlanCheckResult:
    """
    Report which declared indexes serve this request

    Args:
        request: Normalized search request
        indexes: Declared index catalog, in preference order

    Returns:
        PlanCheckResult with usable index names ordered by covered prefix
        width, then catalog order
    """
    predicates = _column_predicates(request)
    sort_field = request.sort.field

    usable: List[Tuple[int, int, IndexDescriptor]] = []
    for position, index in enumerate(indexes):
        if not index.columns:
            continue
        leading = index.columns[0]
        if predicates:
            if predicates.get(leading) not in SARGABLE:
                continue
        elif leading != sort_field:
            continue
        usable.append((_matched_prefix(index, predicates, sort_field), position, index))

    usable.sort(key=lambda match: (-match[0], match[1]))

    served_columns = set()
    for width, _, index in usable:
        served_columns.update(
            column for column in index.columns[:width] if predicates.get(column) in SARGABLE
        )

    unindexed = [
        name for name in request.filter.active()
        if FILTER_COLUMNS[name][0] not in served_columns
    ]

    return PlanCheckResult(
        indexed_filters=[index.name for _, _, index in usable],
        uses_indexed_filter=bool(usable),
        unindexed_filters=unindexed,
    )
