"""
Business onboarding and lookup endpoints.

These endpoints create or resolve the tenant itself, so they take the
business id from the path directly instead of a BusinessContext.

Slug rules:
    - An explicit slug is normalized; if a business already owns it, that
      business is returned unchanged (200). Onboarding can be retried safely.
    - Without a slug, one is generated from the name and suffixed (-2, -3,
      ...) until it is free.
    - The slug never changes after creation: booking links depend on it.
"""
import logging
import re
import unicodedata

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .core.config import get_settings
from .core.db import get_session
from .core.errors import ConflictError, ValidationError
from .models import Business
from .schemas import BusinessCreate, BusinessResponse, BusinessUpdate
from .tenancy.context import require_business

router = APIRouter()
logger = logging.getLogger(__name__)

MAX_SLUG_ATTEMPTS = 1000
REQUIRED_BUSINESS_FIELDS = {"name", "timezone", "notifications_enabled"}


# === Helper Functions ===

def generate_slug(name: str) -> str:
    """
    Generate a URL-safe slug from a business name.

    Examples:
        "Bella's Salon" -> "bellas-salon"
        "Café Beauté" -> "cafe-beaute"
        "Hair & Nails!!!" -> "hair-nails"
    """
    normalized = unicodedata.normalize("NFKD", name)
    ascii_str = normalized.encode("ascii", "ignore").decode("ascii")
    ascii_str = ascii_str.replace("'", "")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_str.lower())
    return slug.strip("-")[:100]


async def get_business_by_slug(db: AsyncSession, slug: str) -> Business | None:
    result = await db.execute(select(Business).where(Business.slug == slug))
    return result.scalar_one_or_none()


async def ensure_unique_slug(db: AsyncSession, base_slug: str) -> str:
    """Return base_slug, or the first free base_slug-2, base_slug-3, ..."""
    candidate = base_slug
    counter = 2
    while await get_business_by_slug(db, candidate) is not None:
        candidate = f"{base_slug}-{counter}"
        counter += 1
        if counter > MAX_SLUG_ATTEMPTS:
            raise ConflictError(
                "Unable to generate a unique slug",
                details={"slug": base_slug},
            )
    return candidate


def booking_url(business: Business) -> str:
    base = get_settings().public_api_base.rstrip("/")
    return f"{base}/book/{business.slug}"


def to_response(business: Business) -> BusinessResponse:
    response = BusinessResponse.model_validate(business)
    response.booking_url = booking_url(business)
    return response


async def create_business(db: AsyncSession, request: BusinessCreate) -> tuple[Business, bool]:
    """Create a business, or return the one that already owns the requested slug."""
    if request.slug:
        slug = generate_slug(request.slug)
        if not slug:
            raise ValidationError("Slug must contain letters or digits", details={"slug": request.slug})
        existing = await get_business_by_slug(db, slug)
        if existing:
            return existing, False
    else:
        base_slug = generate_slug(request.name) or "business"
        slug = await ensure_unique_slug(db, base_slug)

    business = Business(
        name=request.name,
        slug=slug,
        description=request.description,
        phone=request.phone,
        email=request.email,
        website=request.website,
        address=request.address,
        timezone=request.timezone,
        notifications_enabled=request.notifications_enabled,
    )
    db.add(business)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        # Another request took the slug between the check and the insert.
        existing = await get_business_by_slug(db, slug)
        if existing and request.slug:
            return existing, False
        raise ConflictError("Slug already in use", details={"slug": slug})

    await db.refresh(business)
    logger.info(f"Created business '{business.name}' ({business.id}) with slug '{business.slug}'")
    return business, True


# === Endpoints ===

@router.post("/businesses", response_model=BusinessResponse, status_code=201)
async def create_business_endpoint(
    request: BusinessCreate,
    response: Response,
    db: AsyncSession = Depends(get_session),
):
    """
    Create a new business.

    Returns:
    - 201: Business created
    - 200: A business with this slug already exists (returned as-is)
    - 422: Invalid input
    """
    business, created = await create_business(db, request)
    if not created:
        response.status_code = status.HTTP_200_OK
    return to_response(business)


@router.get("/businesses/{business_id}", response_model=BusinessResponse)
async def get_business(
    business_id: str,
    db: AsyncSession = Depends(get_session),
):
    """Get a business by id, falling back to slug."""
    business = await require_business(db, business_id)
    return to_response(business)


@router.patch("/businesses/{business_id}", response_model=BusinessResponse)
async def update_business(
    business_id: str,
    request: BusinessUpdate,
    db: AsyncSession = Depends(get_session),
):
    """Partial update. Unknown fields (including slug) are rejected with 422."""
    business = await require_business(db, business_id)
    for field_name, value in request.model_dump(exclude_unset=True).items():
        if value is None and field_name in REQUIRED_BUSINESS_FIELDS:
            continue
        setattr(business, field_name, value)
    await db.commit()
    await db.refresh(business)
    return to_response(business)
