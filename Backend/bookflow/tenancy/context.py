"""
Multi-tenancy context module for BookFlow.

This module provides the BusinessContext abstraction for tenant isolation.

The active tenant is ALWAYS passed explicitly: routes resolve it from the
URL path and hand it (or its business_id) to every query helper and to the
booking core. There is no process-wide "current business".
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import Depends, Path
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.db import get_session
from ..core.errors import NotFoundError
from ..models import Business


logger = logging.getLogger(__name__)


class BusinessResolutionSource(str, Enum):
    """How the business context was determined."""

    PATH_ID = "path_id"        # From /businesses/{business_id}/...
    PATH_SLUG = "path_slug"    # Slug passed where an id was expected


@dataclass(frozen=True)
class BusinessContext:
    """
    Immutable context representing the current tenant for a request.

    Attributes:
        business_id: The database ID of the business (businesses.id)
        slug: URL-safe identifier used in public booking links
        name: Human-readable business name
        timezone: IANA timezone string, informational only
        notifications_enabled: Owner push notifications toggle
        source: How this context was determined (for logging)
    """

    business_id: str
    slug: Optional[str] = None
    name: Optional[str] = None
    timezone: str = "America/New_York"
    notifications_enabled: bool = True
    source: BusinessResolutionSource = BusinessResolutionSource.PATH_ID

    def __post_init__(self):
        if not self.business_id:
            raise ValueError("business_id must be non-empty")

    @classmethod
    def from_business(
        cls,
        business: Business,
        source: BusinessResolutionSource = BusinessResolutionSource.PATH_ID,
    ) -> "BusinessContext":
        return cls(
            business_id=business.id,
            slug=business.slug,
            name=business.name,
            timezone=business.timezone,
            notifications_enabled=business.notifications_enabled,
            source=source,
        )


# ────────────────────────────────────────────────────────────────
# Resolution Functions
# ────────────────────────────────────────────────────────────────

async def resolve_business(session: AsyncSession, id_or_slug: str) -> Optional[Business]:
    """
    Look a business up by id, falling back to slug.

    Booking links carry the slug while the owner app carries the id, so
    both resolve to the same tenant.
    """
    business = await session.get(Business, id_or_slug)
    if business:
        return business
    result = await session.execute(select(Business).where(Business.slug == id_or_slug))
    return result.scalar_one_or_none()


async def resolve_business_context(
    session: AsyncSession,
    id_or_slug: str,
) -> Optional[BusinessContext]:
    business = await resolve_business(session, id_or_slug)
    if not business:
        return None
    source = (
        BusinessResolutionSource.PATH_ID
        if business.id == id_or_slug
        else BusinessResolutionSource.PATH_SLUG
    )
    return BusinessContext.from_business(business, source)


async def require_business(session: AsyncSession, id_or_slug: str) -> Business:
    business = await resolve_business(session, id_or_slug)
    if not business:
        raise NotFoundError("Business not found", details={"businessId": id_or_slug})
    return business


# ────────────────────────────────────────────────────────────────
# FastAPI Dependency
# ────────────────────────────────────────────────────────────────

async def get_business_context(
    business_id: str = Path(..., description="Business id or slug"),
    session: AsyncSession = Depends(get_session),
) -> BusinessContext:
    """
    Resolve the tenant from the `{business_id}` path segment.

    Raises NotFoundError (404) if neither an id nor a slug matches.
    """
    ctx = await resolve_business_context(session, business_id)
    if not ctx:
        raise NotFoundError("Business not found", details={"businessId": business_id})
    logger.debug(f"Resolved business '{business_id}': business_id={ctx.business_id} ({ctx.source.value})")
    return ctx
