"""
Core module - configuration, database, domain errors, and response formatting.
"""
from .config import Settings, get_settings
from .db import get_session, Base, engine, AsyncSessionLocal
from .errors import (
    DomainError,
    ValidationError,
    NotFoundError,
    ConflictError,
    InvalidTransitionError,
)
from .responses import (
    ErrorDetail,
    ErrorEnvelope,
    ErrorCodes,
    error_response,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "get_session",
    "Base",
    "engine",
    "AsyncSessionLocal",
    # Errors
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    # Responses
    "ErrorDetail",
    "ErrorEnvelope",
    "ErrorCodes",
    "error_response",
]
