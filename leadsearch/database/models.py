import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, JSON, Text, Float, Integer, Boolean
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _new_lead_id() -> str:
    return str(uuid.uuid4())


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String(36), primary_key=True, default=_new_lead_id)

    # Basic business information
    business_name = Column(String(255), nullable=False)
    address = Column(Text)
    city = Column(String(100))
    state = Column(String(50))
    zip_code = Column(String(20))
    phone = Column(String(50))
    website_url = Column(Text)
    has_website = Column(Boolean, default=False)
    business_category = Column(String(100))
    latitude = Column(Float)
    longitude = Column(Float)

    # Pipeline status: new, validated, enriched, archived
    status = Column(String(20), default="new", nullable=False)

    # Provenance
    source = Column(String(50))
    external_place_id = Column(String(255))
    source_updated_at = Column(DateTime)
    last_synced_at = Column(DateTime)
    freshness_score = Column(Float)

    # Place details
    google_maps_uri = Column(Text)
    types = Column(JSON)
    business_status = Column(String(30))
    primary_type_display_name = Column(String(255))
    pure_service_area_business = Column(Boolean, default=False)
    google_rating = Column(Float)
    review_count = Column(Integer)
    price_level = Column(String(40))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
