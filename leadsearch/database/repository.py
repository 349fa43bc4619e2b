"""
SQLAlchemy storage for lead search and lead mutations
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from sqlalchemy import func, or_, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import LeadNotFoundError, LeadReloadError, SearchBackendError
from ..models.lead import LeadStatus, LeadSummary
from ..models.search import LeadPage, SearchFilter, SearchRequest
from .models import Lead as LeadModel

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": LeadModel.created_at,
    "business_name": LeadModel.business_name,
    "google_rating": LeadModel.google_rating,
    "review_count": LeadModel.review_count,
    "city": LeadModel.city,
    "state": LeadModel.state,
}


def _naive_utc(value: str) -> datetime:
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class LeadRepository:
    """Lead storage collaborator: paged search plus the mutations the lead service needs"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def query(self, request: SearchRequest) -> LeadPage:
        """One page of leads matching the request, with the exact match count"""
        with self.session_factory() as db:
            query = self._apply_filters(db.query(LeadModel), request.filter)
            total = query.count()

            sort_column = SORT_COLUMNS[request.sort.field]
            order = sort_column.asc() if request.sort.direction == "asc" else sort_column.desc()
            rows = (
                query.order_by(order, LeadModel.id.asc())
                .offset(request.pagination.offset)
                .limit(request.pagination.limit)
                .all()
            )

            logger.debug(f"Lead query returned {len(rows)} of {total} rows")
            return LeadPage(rows=[LeadSummary.model_validate(row) for row in rows], total=total)

    def _apply_filters(self, query, filters: SearchFilter):
        """Apply normalized search filters to database query"""

        if filters.city:
            query = query.filter(func.lower(LeadModel.city) == filters.city)

        if filters.state:
            query = query.filter(func.upper(LeadModel.state) == filters.state)

        if filters.business_category:
            query = query.filter(func.lower(LeadModel.business_category) == filters.business_category)

        if filters.status is not None:
            query = query.filter(LeadModel.status == filters.status.value)

        if filters.has_website is not None:
            query = query.filter(LeadModel.has_website == filters.has_website)

        if filters.has_phone is not None:
            has_phone = and_(LeadModel.phone.isnot(None), LeadModel.phone != "")
            query = query.filter(has_phone if filters.has_phone else ~has_phone)

        if filters.pure_service_area_business is not None:
            query = query.filter(LeadModel.pure_service_area_business == filters.pure_service_area_business)

        if filters.business_status is not None:
            query = query.filter(LeadModel.business_status == filters.business_status.value)

        if filters.price_level is not None:
            query = query.filter(LeadModel.price_level == filters.price_level.value)

        if filters.min_rating is not None:
            query = query.filter(LeadModel.google_rating >= filters.min_rating)

        if filters.max_rating is not None:
            query = query.filter(LeadModel.google_rating <= filters.max_rating)

        if filters.created_after:
            query = query.filter(LeadModel.created_at >= _naive_utc(filters.created_after))

        if filters.created_before:
            query = query.filter(LeadModel.created_at <= _naive_utc(filters.created_before))

        if filters.business_name_contains:
            pattern = f"%{_escape_like(filters.business_name_contains)}%"
            query = query.filter(LeadModel.business_name.ilike(pattern, escape="\\"))

        return query

    def get(self, lead_id: str) -> LeadSummary:
        with self.session_factory() as db:
            return LeadSummary.model_validate(self._load(db, lead_id))

    def update_status(self, lead_id: str, status: LeadStatus) -> LeadSummary:
        return self._update(lead_id, {"status": LeadStatus(status).value})

    def apply_enrichment(self, lead_id: str, fields: Dict[str, Any]) -> LeadSummary:
        return self._update(lead_id, fields)

    def _load(self, db: Session, lead_id: str) -> LeadModel:
        lead = db.query(LeadModel).filter(LeadModel.id == str(lead_id)).first()
        if lead is None:
            raise LeadNotFoundError("Lead not found", {"lead_id": str(lead_id)})
        return lead

    def _update(self, lead_id: str, fields: Dict[str, Any]) -> LeadSummary:
        with self.session_factory() as db:
            lead = self._load(db, lead_id)
            try:
                for name, value in fields.items():
                    setattr(lead, name, value)
                lead.updated_at = datetime.utcnow()
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Error updating lead {lead_id}: {e}")
                raise SearchBackendError("Failed to update lead", {"lead_id": str(lead_id)}) from e

            logger.info(f"Lead {lead_id} updated: {sorted(fields)}")
            try:
                db.refresh(lead)
                return LeadSummary.model_validate(lead)
            except Exception as e:
                logger.error(f"Lead {lead_id} updated but could not be reloaded: {e}")
                raise LeadReloadError("Lead updated but could not be reloaded", {"lead_id": str(lead_id)}) from e
