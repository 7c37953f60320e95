"""
Dashboard stats tests.

summarize_bookings() is exercised with plain objects; get_dashboard_stats()
against the database.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

import pytest

from bookflow.booking_lifecycle import BookingManager
from bookflow.models import Business, BookingStatus
from bookflow.stats import RECENT_LIMIT, get_dashboard_stats, summarize_bookings

TODAY = date(2030, 1, 7)  # Monday


@dataclass
class FakeBooking:
    date: str
    status: str
    total_price: int
    created_at: datetime = None
    id: str = "b"


# ────────────────────────────────────────────────────────────────
# Pure aggregation
# ────────────────────────────────────────────────────────────────

class TestSummarizeBookings:

    def test_revenue_counts_confirmed_and_completed(self):
        bookings = [
            FakeBooking("2030-01-07", "confirmed", 4500),
            FakeBooking("2030-01-07", "pending", 4500),
            FakeBooking("2030-01-07", "cancelled", 4500),
            FakeBooking("2030-01-01", "completed", 2000),
        ]
        stats = summarize_bookings(bookings, TODAY)

        assert stats.total_revenue == 6500
        assert stats.today_bookings == 3
        assert stats.total_bookings == 4
        assert stats.pending_bookings == 1

    def test_only_confirmed_counts_among_todays_mix(self):
        bookings = [
            FakeBooking("2030-01-07", "confirmed", 4500),
            FakeBooking("2030-01-07", "pending", 8500),
            FakeBooking("2030-01-07", "cancelled", 2000),
        ]
        stats = summarize_bookings(bookings, TODAY)

        assert stats.total_revenue == 4500
        assert stats.today_bookings == 3
        assert stats.weekly_data[-1].revenue == 4500

    def test_weekly_series_covers_seven_days_ending_today(self):
        stats = summarize_bookings([], TODAY)

        assert len(stats.weekly_data) == 7
        assert stats.weekly_data[0].date == "2030-01-01"
        assert stats.weekly_data[-1].date == "2030-01-07"
        assert stats.weekly_data[-1].day == "Mon"
        assert all(p.bookings == 0 and p.revenue == 0 for p in stats.weekly_data)

    def test_weekly_revenue_uses_same_rule_as_total(self):
        bookings = [
            FakeBooking("2030-01-05", "confirmed", 3000),
            FakeBooking("2030-01-05", "pending", 9999),
            FakeBooking("2029-12-01", "completed", 1000),  # outside the week
        ]
        stats = summarize_bookings(bookings, TODAY)

        saturday = next(p for p in stats.weekly_data if p.date == "2030-01-05")
        assert saturday.bookings == 2
        assert saturday.revenue == 3000
        assert sum(p.revenue for p in stats.weekly_data) == stats.total_revenue - 1000

    def test_recent_bookings_newest_first(self):
        base = datetime(2030, 1, 1, tzinfo=timezone.utc)
        bookings = [
            FakeBooking("2030-01-07", "pending", 0, created_at=base + timedelta(minutes=i), id=str(i))
            for i in range(8)
        ]
        stats = summarize_bookings(bookings, TODAY)

        assert [b.id for b in stats.recent_bookings] == ["7", "6", "5", "4", "3"]
        assert len(stats.recent_bookings) == RECENT_LIMIT

    def test_recent_bookings_mixes_naive_and_aware(self):
        bookings = [
            FakeBooking("2030-01-07", "pending", 0, created_at=datetime(2030, 1, 1, 12), id="naive"),
            FakeBooking(
                "2030-01-07", "pending", 0, created_at=datetime(2030, 1, 1, 13, tzinfo=timezone.utc), id="aware"
            ),
        ]
        stats = summarize_bookings(bookings, TODAY)
        assert [b.id for b in stats.recent_bookings] == ["aware", "naive"]


# ────────────────────────────────────────────────────────────────
# Database aggregation
# ────────────────────────────────────────────────────────────────

class TestDashboardStats:

    @pytest.mark.asyncio
    async def test_three_bookings_today(self, async_session, business, service):
        manager = BookingManager(async_session)
        for time, status, email in [
            ("9:00 AM", "confirmed", "a@example.com"),
            ("9:30 AM", "pending", "b@example.com"),
            ("10:00 AM", "cancelled", "c@example.com"),
        ]:
            await manager.create_booking(
                business_id=business.id,
                customer_name=email.split("@")[0],
                customer_email=email,
                service_id=service.id,
                date=TODAY.isoformat(),
                time=time,
                status=status,
            )

        stats = await get_dashboard_stats(async_session, business.id, today=TODAY)

        assert stats["total_revenue"] == 4500
        assert stats["today_bookings"] == 3
        assert stats["total_bookings"] == 3
        assert stats["pending_bookings"] == 1
        assert stats["total_customers"] == 3
        assert stats["total_services"] == 1
        assert stats["weekly_data"][-1] == {"date": "2030-01-07", "day": "Mon", "bookings": 3, "revenue": 4500}

        recent = stats["recent_bookings"]
        assert len(recent) == 3
        assert recent[0]["customer_name"] == "c"
        assert recent[0]["service_name"] == "Haircut"
        assert recent[0]["status"] == BookingStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_other_business_not_counted(self, async_session, business, service):
        other = Business(name="Other", slug="other")
        async_session.add(other)
        await async_session.commit()

        await BookingManager(async_session).create_booking(
            business_id=business.id,
            customer_name="Ana",
            customer_email="ana@example.com",
            service_id=service.id,
            date=TODAY.isoformat(),
            time="9:00 AM",
            status="confirmed",
        )

        stats = await get_dashboard_stats(async_session, other.id, today=TODAY)
        assert stats["total_revenue"] == 0
        assert stats["total_bookings"] == 0
        assert stats["total_services"] == 0
        assert stats["recent_bookings"] == []
