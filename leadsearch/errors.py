"""
Error taxonomy for the leads search service

Bad user input is degraded by the normalizer rather than rejected, so only the
orchestrator, the cache store and the lead service raise these, and only for
unparseable payloads, backend failures and unknown leads.
"""

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse


def build_error_payload(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    payload = {"error": {"code": code, "message": message}}
    if details is not None:
        payload["error"]["details"] = details
    return payload


class LeadSearchError(Exception):
    """Base error carrying the HTTP status and a stable error code"""

    status_code = 500
    code = "LEAD_SEARCH_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def payload(self) -> Dict[str, Any]:
        return build_error_payload(self.code, self.message, self.details)


class ValidationError(LeadSearchError):
    """Raw search input that cannot be coerced even with defaults (e.g. a non-object body)"""

    status_code = 400
    code = "INVALID_SEARCH_INPUT"


class SearchBackendError(LeadSearchError):
    """The storage collaborator failed; never cached"""

    status_code = 500
    code = "LEAD_SEARCH_FAILED"


class LeadReloadError(SearchBackendError):
    """The mutation committed but the updated lead could not be read back"""

    code = "LEAD_RELOAD_FAILED"


class CacheUnavailableError(LeadSearchError):
    """The cache store is unreachable or returned unreadable data"""

    status_code = 503
    code = "SEARCH_CACHE_UNAVAILABLE"


class LeadNotFoundError(LeadSearchError):
    status_code = 404
    code = "LEAD_NOT_FOUND"


async def lead_search_error_handler(_: Request, exc: LeadSearchError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.payload)
