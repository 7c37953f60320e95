"""
Tenant-scoped query helpers.

These functions provide safe, tenant-isolated database queries.
ALL queries for tenant data MUST use these helpers or include explicit
business_id filtering.

Usage:
    from bookflow.tenancy.queries import get_service_by_id, list_services, scoped_select

    service = await get_service_by_id(session, ctx.business_id, service_id)
    services = await list_services(session, ctx.business_id)

    # Or using composable helpers:
    stmt = scoped_select(Service, business_id).where(Service.is_active.is_(True))
"""

from typing import Optional, Sequence, Type, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase

from ..models import (
    Availability,
    Booking,
    BookingStatus,
    Customer,
    PushToken,
    Service,
)

T = TypeVar("T", bound=DeclarativeBase)


# ────────────────────────────────────────────────────────────────
# Composable Query Helpers
# ────────────────────────────────────────────────────────────────

def scoped_select(model: Type[T], business_id: str) -> Select:
    """
    Create a SELECT statement pre-filtered by business_id.

    Usage:
        stmt = scoped_select(Service, ctx.business_id).where(Service.is_active.is_(True))
        result = await session.execute(stmt)
    """
    return select(model).where(model.business_id == business_id)


def tenant_filter(model: Type[T], business_id: str):
    """Return a SQLAlchemy filter clause for business_id."""
    return model.business_id == business_id


async def require_owned(
    session: AsyncSession,
    model: Type[T],
    entity_id: str,
    business_id: str,
) -> Optional[T]:
    """
    Fetch an entity by ID, validating business ownership.
    Returns None if not found or owned by another business.
    """
    result = await session.execute(
        select(model).where(
            model.id == entity_id,
            model.business_id == business_id,
        )
    )
    return result.scalar_one_or_none()


# ────────────────────────────────────────────────────────────────
# Service Queries
# ────────────────────────────────────────────────────────────────

async def get_service_by_id(
    session: AsyncSession,
    business_id: str,
    service_id: str,
) -> Optional[Service]:
    """Get a service by ID, scoped to business."""
    return await require_owned(session, Service, service_id, business_id)


async def list_services(
    session: AsyncSession,
    business_id: str,
    active_only: bool = False,
) -> Sequence[Service]:
    """List services for a business, oldest first."""
    query = scoped_select(Service, business_id)
    if active_only:
        query = query.where(Service.is_active.is_(True))
    query = query.order_by(Service.created_at, Service.name)
    result = await session.execute(query)
    return result.scalars().all()


# ────────────────────────────────────────────────────────────────
# Customer Queries
# ────────────────────────────────────────────────────────────────

async def list_customers(session: AsyncSession, business_id: str) -> Sequence[Customer]:
    result = await session.execute(
        scoped_select(Customer, business_id).order_by(Customer.name)
    )
    return result.scalars().all()


# ────────────────────────────────────────────────────────────────
# Booking Queries
# ────────────────────────────────────────────────────────────────

async def get_booking_by_id(
    session: AsyncSession,
    business_id: str,
    booking_id: str,
) -> Optional[Booking]:
    """Get a booking by ID, scoped to business."""
    return await require_owned(session, Booking, booking_id, business_id)


async def list_bookings(
    session: AsyncSession,
    business_id: str,
    on_date: Optional[str] = None,
    status: Optional[BookingStatus] = None,
) -> Sequence[Booking]:
    """List bookings for a business, optionally for one date and/or status."""
    query = scoped_select(Booking, business_id)
    if on_date:
        query = query.where(Booking.date == on_date)
    if status:
        query = query.where(Booking.status == status)
    query = query.order_by(Booking.date.desc(), Booking.start_minute.desc())
    result = await session.execute(query)
    return result.scalars().all()


async def list_bookings_on_date(
    session: AsyncSession,
    business_id: str,
    on_date: str,
) -> Sequence[Booking]:
    """All bookings (any status) on one date, ordered by start time."""
    result = await session.execute(
        scoped_select(Booking, business_id)
        .where(Booking.date == on_date)
        .order_by(Booking.start_minute)
    )
    return result.scalars().all()


async def find_active_booking_at(
    session: AsyncSession,
    business_id: str,
    on_date: str,
    start_minute: int,
    exclude_id: Optional[str] = None,
) -> Optional[Booking]:
    """Return the non-cancelled booking occupying a slot, if any."""
    query = scoped_select(Booking, business_id).where(
        Booking.date == on_date,
        Booking.start_minute == start_minute,
        Booking.status != BookingStatus.CANCELLED,
    )
    if exclude_id:
        query = query.where(Booking.id != exclude_id)
    result = await session.execute(query.limit(1))
    return result.scalar_one_or_none()


async def service_has_bookings(
    session: AsyncSession,
    business_id: str,
    service_id: str,
) -> bool:
    result = await session.execute(
        select(Booking.id)
        .where(tenant_filter(Booking, business_id), Booking.service_id == service_id)
        .limit(1)
    )
    return result.first() is not None


# ────────────────────────────────────────────────────────────────
# Availability Queries
# ────────────────────────────────────────────────────────────────

async def list_availability(session: AsyncSession, business_id: str) -> Sequence[Availability]:
    """Weekly availability rows for a business, Sunday first."""
    result = await session.execute(
        scoped_select(Availability, business_id).order_by(Availability.day_of_week)
    )
    return result.scalars().all()


async def get_availability_for_day(
    session: AsyncSession,
    business_id: str,
    day_of_week: int,
) -> Optional[Availability]:
    result = await session.execute(
        scoped_select(Availability, business_id).where(Availability.day_of_week == day_of_week)
    )
    return result.scalar_one_or_none()


# ────────────────────────────────────────────────────────────────
# Push Token Queries
# ────────────────────────────────────────────────────────────────

async def list_active_push_tokens(session: AsyncSession, business_id: str) -> Sequence[PushToken]:
    result = await session.execute(
        scoped_select(PushToken, business_id).where(PushToken.is_active.is_(True))
    )
    return result.scalars().all()


async def get_push_token(session: AsyncSession, token: str) -> Optional[PushToken]:
    """Tokens are globally unique, so lookup is not tenant-scoped."""
    result = await session.execute(select(PushToken).where(PushToken.token == token))
    return result.scalar_one_or_none()
