"""
Lead mutation service
Every committed mutation runs the search cache invalidation hook
"""
import time
import logging
from typing import Any, Dict, Optional

from ..errors import ValidationError
from ..models.lead import BusinessStatus, LeadStatus, LeadSummary
from ..search.invalidation import MutationKind, SearchCacheInvalidator, invalidates_search_cache
from ..search.normalizer import FilterNormalizer

logger = logging.getLogger(__name__)

# Fields a caller may set through enrichment
ENRICHABLE_FIELDS = (
    "business_name", "address", "city", "state", "zip_code", "phone", "website_url",
    "business_category", "latitude", "longitude", "source", "external_place_id",
    "google_maps_uri", "types", "business_status", "primary_type_display_name",
    "pure_service_area_business", "google_rating", "review_count", "price_level",
    "freshness_score",
)


class LeadService:
    def __init__(self, repository, invalidator: SearchCacheInvalidator, normalizer: Optional[FilterNormalizer] = None):
        self.repository = repository
        self.invalidator = invalidator
        self.normalizer = normalizer or FilterNormalizer()

    def get_lead(self, lead_id: str) -> LeadSummary:
        return self.repository.get(lead_id)

    @invalidates_search_cache(MutationKind.STATUS_UPDATE)
    def update_status(self, lead_id: str, status: LeadStatus) -> LeadSummary:
        return self.repository.update_status(lead_id, status)

    @invalidates_search_cache(MutationKind.SOFT_DELETE)
    def soft_delete(self, lead_id: str) -> LeadSummary:
        """Archive the lead; archived leads stay searchable by status"""
        return self.repository.update_status(lead_id, LeadStatus.ARCHIVED)

    @invalidates_search_cache(MutationKind.ENRICH)
    def enrich(
        self,
        lead_id: str,
        details: Dict[str, Any],
        requested_by: Optional[str] = None,
        force_refresh: bool = False,
    ) -> LeadSummary:
        """
        Apply enrichment details to a lead and mark it enriched

        Args:
            lead_id: Lead to enrich
            details: Place details gathered upstream
            requested_by: Caller identity, for logging
            force_refresh: Re-apply even if the lead is already enriched

        Returns:
            Updated lead
        """
        start_time = time.time()
        logger.info(f"Lead enrichment started: {lead_id} (requested by: {requested_by or 'unknown'})")

        fields = self._clean_details(details)
        if not fields:
            raise ValidationError("No enrichment data provided for this lead", {"lead_id": lead_id})

        if not force_refresh:
            current = self.repository.get(lead_id)
            if current.status == LeadStatus.ENRICHED.value:
                logger.info(f"Lead {lead_id} already enriched; pass force_refresh to re-apply")
                return current

        if "website_url" in fields:
            fields["has_website"] = bool(fields["website_url"])
        fields["status"] = LeadStatus.ENRICHED.value

        lead = self.repository.apply_enrichment(lead_id, fields)
        logger.info(f"Lead enrichment completed: {lead_id} in {time.time() - start_time:.3f}s")
        return lead

    def _clean_details(self, details: Dict[str, Any]) -> Dict[str, Any]:
        fields = {}
        for name in ENRICHABLE_FIELDS:
            if name not in details:
                continue
            value = details[name]
            if isinstance(value, str):
                value = value.strip() or None
            fields[name] = value

        try:
            if fields.get("google_rating") is not None:
                fields["google_rating"] = min(max(float(fields["google_rating"]), 0.0), 5.0)
            if fields.get("review_count") is not None:
                fields["review_count"] = max(int(fields["review_count"]), 0)
        except (TypeError, ValueError, OverflowError):
            raise ValidationError("Enrichment rating fields must be numeric")
        self._coerce_filterable(fields)
        return fields

    def _coerce_filterable(self, fields: Dict[str, Any]) -> None:
        """Store filterable columns in the form search filters compare against"""
        for name in ("city", "business_category"):
            if fields.get(name) is not None:
                fields[name] = self.normalizer.coerce_text(fields[name])

        if fields.get("state") is not None:
            fields["state"] = self.normalizer.coerce_state(fields["state"])

        if fields.get("price_level") is not None:
            level = self.normalizer.coerce_price_level(fields["price_level"])
            if level is None:
                raise ValidationError("Unknown price level", {"price_level": str(fields["price_level"])[:100]})
            fields["price_level"] = level.value

        if fields.get("business_status") is not None:
            status = self.normalizer.coerce_enum(BusinessStatus, fields["business_status"])
            if status is None:
                raise ValidationError("Unknown business status", {"business_status": str(fields["business_status"])[:100]})
            fields["business_status"] = status.value
