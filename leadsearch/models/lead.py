from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum

class LeadStatus(str, Enum):
    NEW = "new"
    VALIDATED = "validated"
    ENRICHED = "enriched"
    ARCHIVED = "archived"

class BusinessStatus(str, Enum):
    OPERATIONAL = "OPERATIONAL"
    CLOSED_TEMPORARILY = "CLOSED_TEMPORARILY"
    CLOSED_PERMANENTLY = "CLOSED_PERMANENTLY"

class PriceLevel(str, Enum):
    FREE = "PRICE_LEVEL_FREE"
    INEXPENSIVE = "PRICE_LEVEL_INEXPENSIVE"
    MODERATE = "PRICE_LEVEL_MODERATE"
    EXPENSIVE = "PRICE_LEVEL_EXPENSIVE"
    VERY_EXPENSIVE = "PRICE_LEVEL_VERY_EXPENSIVE"

class LeadSummary(BaseModel):
    """Display projection of a lead row, as returned by search"""
    id: str
    business_name: str
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    phone: Optional[str] = None
    website_url: Optional[str] = None
    has_website: Optional[bool] = None
    business_category: Optional[str] = None
    status: Optional[str] = None
    google_rating: Optional[float] = None
    review_count: Optional[int] = None
    business_status: Optional[str] = None
    price_level: Optional[str] = None
    pure_service_area_business: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

class LeadStatusUpdate(BaseModel):
    status: LeadStatus

class LeadEnrichRequest(BaseModel):
    """Enrichment payload; provider lookups happen upstream of this service"""
    lead_id: str = Field(alias="leadId")
    details: Dict[str, Any] = {}
    force_refresh: bool = Field(False, alias="forceRefresh")

    model_config = {"populate_by_name": True}
