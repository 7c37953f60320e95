"""
Multi-tenancy package for BookFlow.

This package provides tenant isolation primitives: every business owns its
services, customers, bookings, availability and push tokens, and nothing
is ever read across businesses.

Modules:
    context: BusinessContext resolution and the FastAPI dependency
    queries: Tenant-scoped query helpers
"""

from .context import (
    BusinessContext,
    BusinessResolutionSource,
    get_business_context,
    require_business,
    resolve_business,
    resolve_business_context,
)

from .queries import (
    # Composable helpers
    scoped_select,
    tenant_filter,
    require_owned,
    # Service queries
    get_service_by_id,
    list_services,
    # Customer queries
    list_customers,
    # Booking queries
    get_booking_by_id,
    list_bookings,
    list_bookings_on_date,
    find_active_booking_at,
    service_has_bookings,
    # Availability queries
    list_availability,
    get_availability_for_day,
    # Push token queries
    list_active_push_tokens,
    get_push_token,
)

__all__ = [
    # Context
    "BusinessContext",
    "BusinessResolutionSource",
    "get_business_context",
    "require_business",
    "resolve_business",
    "resolve_business_context",
    # Query helpers
    "scoped_select",
    "tenant_filter",
    "require_owned",
    "get_service_by_id",
    "list_services",
    "list_customers",
    "get_booking_by_id",
    "list_bookings",
    "list_bookings_on_date",
    "find_active_booking_at",
    "service_has_bookings",
    "list_availability",
    "get_availability_for_day",
    "list_active_push_tokens",
    "get_push_token",
]
