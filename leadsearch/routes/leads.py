from fastapi import APIRouter, Body, Depends, Request
from typing import Any, Dict
import logging

from ..models.lead import LeadSummary, LeadStatusUpdate, LeadEnrichRequest
from ..search.engine import LeadSearchEngine
from ..services.leads import LeadService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/leads", tags=["leads"])


def get_search_engine(request: Request) -> LeadSearchEngine:
    """Search engine dependency, built at startup and held on app state"""
    return request.app.state.search_engine


def get_lead_service(request: Request) -> LeadService:
    return request.app.state.lead_service


@router.get("/")
def list_leads(request: Request, engine: LeadSearchEngine = Depends(get_search_engine)) -> Dict[str, Any]:
    """List leads filtered by query parameters"""
    params = request.query_params
    raw = {key: params.getlist(key) for key in params.keys()}
    return engine.search(raw).to_envelope()


@router.post("/search")
def search_leads(
    payload: Any = Body(default=None),
    engine: LeadSearchEngine = Depends(get_search_engine)
) -> Dict[str, Any]:
    """Search leads with a JSON body of filters"""
    return engine.search(payload).to_envelope()


@router.post("/enrich", response_model=LeadSummary)
def enrich_lead(payload: LeadEnrichRequest, service: LeadService = Depends(get_lead_service)):
    """Apply enrichment details to a lead"""
    return service.enrich(payload.lead_id, payload.details, force_refresh=payload.force_refresh)


@router.get("/{lead_id}", response_model=LeadSummary)
def get_lead(lead_id: str, service: LeadService = Depends(get_lead_service)):
    return service.get_lead(lead_id)


@router.put("/{lead_id}/status", response_model=LeadSummary)
def update_lead_status(
    lead_id: str,
    payload: LeadStatusUpdate,
    service: LeadService = Depends(get_lead_service)
):
    """Update lead status"""
    return service.update_status(lead_id, payload.status)


@router.delete("/{lead_id}", response_model=LeadSummary)
def delete_lead(lead_id: str, service: LeadService = Depends(get_lead_service)):
    """Soft delete: the lead is archived, not removed"""
    return service.soft_delete(lead_id)
