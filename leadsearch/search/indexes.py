"""
Declared index catalog for the leads table
"""
from typing import Tuple

from ..models.search import IndexDescriptor

DEFAULT_INDEX_CATALOG: Tuple[IndexDescriptor, ...] = (
    IndexDescriptor(name="idx_leads_status_created_at", columns=("status", "created_at")),
    IndexDescriptor(name="idx_leads_location", columns=("state", "city")),
    IndexDescriptor(name="idx_leads_city", columns=("city",)),
    IndexDescriptor(name="idx_leads_state", columns=("state",)),
    IndexDescriptor(name="idx_leads_category", columns=("business_category",)),
    IndexDescriptor(name="idx_leads_status", columns=("status",)),
    IndexDescriptor(name="idx_leads_has_website", columns=("has_website",)),
    IndexDescriptor(name="idx_leads_google_rating", columns=("google_rating",)),
    IndexDescriptor(name="idx_leads_review_count", columns=("review_count",)),
    IndexDescriptor(name="idx_leads_business_status", columns=("business_status",)),
    IndexDescriptor(name="idx_leads_price_level", columns=("price_level",)),
    IndexDescriptor(name="idx_leads_pure_service_area", columns=("pure_service_area_business",)),
    IndexDescriptor(name="idx_leads_created_at", columns=("created_at",)),
)
