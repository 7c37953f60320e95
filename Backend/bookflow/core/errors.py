"""
Typed domain errors.

The booking core raises these instead of HTTPException so it can be used
outside a request. main.py maps them onto the standard error envelope:

    ValidationError         -> 422 VALIDATION_ERROR
    NotFoundError           -> 404 NOT_FOUND
    ConflictError           -> 409 CONFLICT
    InvalidTransitionError  -> 409 STATE_CONFLICT

Storage failures are NOT domain errors; they surface as SQLAlchemyError and
become a generic 500 at the boundary.
"""

from typing import Any, Optional

from .responses import ErrorCodes


class DomainError(Exception):
    """Base class for errors the HTTP boundary can show to the client."""

    status_code: int = 400
    code: str = ErrorCodes.INVALID_INPUT

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(DomainError):
    """Malformed input: bad enum value, bad date or time string, missing field."""

    status_code = 422
    code = ErrorCodes.VALIDATION_ERROR


class NotFoundError(DomainError):
    """Unknown business, service, customer or booking id."""

    status_code = 404
    code = ErrorCodes.NOT_FOUND


class ConflictError(DomainError):
    """Slot already taken or duplicate unique key."""

    status_code = 409
    code = ErrorCodes.CONFLICT


class InvalidTransitionError(DomainError):
    """Booking status change not allowed by the lifecycle graph."""

    status_code = 409
    code = ErrorCodes.STATE_CONFLICT

    def __init__(self, current: str, requested: str, message: Optional[str] = None):
        super().__init__(
            message or f"Cannot change booking status from '{current}' to '{requested}'",
            details={"current": current, "requested": requested},
        )
        self.current = current
        self.requested = requested
