"""
Stats Aggregator for the owner dashboard.

Read-only. Revenue counts bookings that are confirmed or completed, and the
weekly series uses the same rule, so the seven daily revenue points add up
to the part of totalRevenue that falls inside the week. Amounts are integer
cents.

"Today" is the server's calendar date; booking dates are compared to it as
ISO strings, with no timezone conversion.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Booking, BookingStatus, Customer, Service
from .tenancy.queries import tenant_filter

REVENUE_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.COMPLETED})
WEEK_DAYS = 7
RECENT_LIMIT = 5


@dataclass
class DailyPoint:
    date: str
    day: str
    bookings: int = 0
    revenue: int = 0


@dataclass
class BookingStats:
    total_revenue: int = 0
    today_bookings: int = 0
    total_bookings: int = 0
    pending_bookings: int = 0
    weekly_data: list[DailyPoint] = field(default_factory=list)
    recent_bookings: list = field(default_factory=list)


def _created_key(booking) -> datetime:
    created = booking.created_at
    if created is None:
        return datetime.min
    if created.tzinfo is not None:
        created = created.astimezone(timezone.utc).replace(tzinfo=None)
    return created


def _status(booking) -> BookingStatus:
    return BookingStatus(getattr(booking.status, "value", booking.status))


def counts_as_revenue(booking) -> bool:
    return _status(booking) in REVENUE_STATUSES


def summarize_bookings(bookings: Iterable, today: date) -> BookingStats:
    """
    Aggregate one business's bookings.

    recent_bookings holds the RECENT_LIMIT most recently created bookings,
    newest first.
    """
    bookings = list(bookings)
    today_iso = today.isoformat()

    week = []
    for offset in range(WEEK_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        week.append(DailyPoint(date=day.isoformat(), day=day.strftime("%a")))
    by_date = {point.date: point for point in week}

    stats = BookingStats(total_bookings=len(bookings), weekly_data=week)
    for booking in bookings:
        revenue = counts_as_revenue(booking)
        if revenue:
            stats.total_revenue += booking.total_price
        if booking.date == today_iso:
            stats.today_bookings += 1
        if _status(booking) == BookingStatus.PENDING:
            stats.pending_bookings += 1

        point = by_date.get(booking.date)
        if point is not None:
            point.bookings += 1
            if revenue:
                point.revenue += booking.total_price

    stats.recent_bookings = sorted(bookings, key=_created_key, reverse=True)[:RECENT_LIMIT]
    return stats


async def get_dashboard_stats(
    session: AsyncSession,
    business_id: str,
    today: Optional[date] = None,
) -> dict:
    """Load a business's bookings and counts and build the dashboard payload."""
    today = today or date.today()

    rows = await session.execute(
        select(Booking, Customer.name, Service.name)
        .outerjoin(Customer, Customer.id == Booking.customer_id)
        .outerjoin(Service, Service.id == Booking.service_id)
        .where(tenant_filter(Booking, business_id))
        .order_by(Booking.created_at.desc())
    )
    names = {}
    bookings = []
    for booking, customer_name, service_name in rows.all():
        bookings.append(booking)
        names[booking.id] = (customer_name or "Unknown", service_name or "Unknown")

    total_customers = await session.scalar(
        select(func.count(Customer.id)).where(tenant_filter(Customer, business_id))
    )
    total_services = await session.scalar(
        select(func.count(Service.id)).where(tenant_filter(Service, business_id))
    )

    stats = summarize_bookings(bookings, today)
    return {
        "total_revenue": stats.total_revenue,
        "today_bookings": stats.today_bookings,
        "total_bookings": stats.total_bookings,
        "total_customers": total_customers or 0,
        "total_services": total_services or 0,
        "pending_bookings": stats.pending_bookings,
        "weekly_data": [vars(point) for point in stats.weekly_data],
        "recent_bookings": [
            booking_with_names(booking, *names[booking.id]) for booking in stats.recent_bookings
        ],
    }


def booking_with_names(booking: Booking, customer_name: str, service_name: str) -> dict:
    return {
        "id": booking.id,
        "business_id": booking.business_id,
        "customer_id": booking.customer_id,
        "service_id": booking.service_id,
        "date": booking.date,
        "time": booking.time,
        "status": booking.status,
        "total_price": booking.total_price,
        "notes": booking.notes,
        "created_at": booking.created_at,
        "updated_at": booking.updated_at,
        "customer_name": customer_name,
        "service_name": service_name,
    }
