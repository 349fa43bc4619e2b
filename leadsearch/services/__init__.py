from .leads import LeadService, ENRICHABLE_FIELDS

__all__ = ["LeadService", "ENRICHABLE_FIELDS"]
