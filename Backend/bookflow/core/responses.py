"""
Standardized Error Response Module

Every error returned by the API (other than FastAPI's own request-body
validation) uses this envelope:

    {
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable message",
            "details": {...}  # Optional extra context
        },
        "status": "error"
    }

ERROR CODES:
    - NOT_FOUND: Business, service, customer or booking not found
    - VALIDATION_ERROR: Request data failed a domain validation rule
    - CONFLICT: Slot already taken or unique key already in use
    - STATE_CONFLICT: Booking status change not allowed
    - DATABASE_ERROR: Storage failure (details are only logged)
"""

from typing import Any, Optional

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Structured error information."""
    code: str
    message: str
    details: Optional[dict[str, Any]] = None


class ErrorEnvelope(BaseModel):
    """Documented shape of an error response (used in OpenAPI `responses=`)."""
    error: ErrorDetail
    status: str = "error"


# ============================================================================
# COMMON ERROR CODES
# ============================================================================

class ErrorCodes:
    """Standard error codes for API responses."""

    # Not found errors (404)
    NOT_FOUND = "NOT_FOUND"

    # Validation errors (400 / 422)
    INVALID_INPUT = "INVALID_INPUT"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Conflict errors (409)
    CONFLICT = "CONFLICT"
    STATE_CONFLICT = "STATE_CONFLICT"

    # Server errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"


def error_response(
    code: str,
    message: str,
    details: Optional[dict] = None,
) -> dict:
    """Create a standardized error response dict."""
    response = {
        "error": {
            "code": code,
            "message": message,
        },
        "status": "error",
    }
    if details:
        response["error"]["details"] = details
    return response
