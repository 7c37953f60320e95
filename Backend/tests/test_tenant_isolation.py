"""
Multi-Tenant Isolation Tests

These tests verify that tenant isolation is enforced:
1. BusinessContext is validated and immutable
2. Query helpers always filter by business_id
3. Services, customers, bookings and availability of business A are
   invisible to business B
4. The same customer email can exist once per business

Run with: pytest Backend/tests/test_tenant_isolation.py -v
"""

import dataclasses

import pytest

from bookflow.booking_lifecycle import BookingManager
from bookflow.models import Availability, Business, Service
from bookflow.tenancy.context import (
    BusinessContext,
    BusinessResolutionSource,
    resolve_business_context,
)


# ────────────────────────────────────────────────────────────────
# Test Fixtures
# ────────────────────────────────────────────────────────────────

@pytest.fixture
async def two_businesses(async_session):
    """Two businesses, each with one service and Monday hours."""
    a = Business(name="Shop A", slug="shop-a")
    b = Business(name="Shop B", slug="shop-b", timezone="America/Phoenix")
    async_session.add_all([a, b])
    await async_session.flush()
    for business in (a, b):
        async_session.add(Service(business_id=business.id, name=f"{business.name} cut", duration=30, price=1000))
        async_session.add(
            Availability(business_id=business.id, day_of_week=1, start_time="09:00", end_time="10:00")
        )
    await async_session.commit()
    return a, b


# ────────────────────────────────────────────────────────────────
# Unit Tests - BusinessContext
# ────────────────────────────────────────────────────────────────

class TestBusinessContext:
    """Test BusinessContext validation and immutability."""

    def test_requires_business_id(self):
        with pytest.raises(ValueError, match="business_id must be non-empty"):
            BusinessContext(business_id="")

    def test_is_immutable(self):
        ctx = BusinessContext(business_id="abc")
        with pytest.raises(dataclasses.FrozenInstanceError):
            ctx.business_id = "other"

    def test_default_values(self):
        ctx = BusinessContext(business_id="abc")
        assert ctx.slug is None
        assert ctx.timezone == "America/New_York"
        assert ctx.notifications_enabled is True
        assert ctx.source == BusinessResolutionSource.PATH_ID

    @pytest.mark.asyncio
    async def test_resolves_by_id_or_slug(self, async_session, two_businesses):
        a, b = two_businesses

        by_id = await resolve_business_context(async_session, b.id)
        by_slug = await resolve_business_context(async_session, "shop-b")

        assert by_id.business_id == by_slug.business_id == b.id
        assert by_id.source == BusinessResolutionSource.PATH_ID
        assert by_slug.source == BusinessResolutionSource.PATH_SLUG
        assert by_slug.timezone == "America/Phoenix"
        assert await resolve_business_context(async_session, "nope") is None


# ────────────────────────────────────────────────────────────────
# Unit Tests - Query Scoping Helpers
# ────────────────────────────────────────────────────────────────

class TestQueryScoping:
    """Test that query helpers properly scope by business_id."""

    def test_scoped_select_adds_business_filter(self):
        from bookflow.tenancy.queries import scoped_select

        compiled = str(scoped_select(Service, "abc").compile())
        assert "business_id" in compiled.lower()

    def test_tenant_filter_returns_filter_clause(self):
        from bookflow.tenancy.queries import tenant_filter

        clause = tenant_filter(Service, "abc")
        assert "business_id" in str(clause).lower()


# ────────────────────────────────────────────────────────────────
# Integration Tests - Cross-Tenant Isolation
# ────────────────────────────────────────────────────────────────

class TestCrossTenantIsolation:

    @pytest.mark.asyncio
    async def test_services_scoped_to_business(self, async_session, two_businesses):
        from bookflow.tenancy.queries import list_services

        a, b = two_businesses
        a_services = await list_services(async_session, a.id)
        b_services = await list_services(async_session, b.id)

        assert [s.name for s in a_services] == ["Shop A cut"]
        assert not {s.id for s in a_services} & {s.id for s in b_services}

    @pytest.mark.asyncio
    async def test_service_lookup_validates_business(self, async_session, two_businesses):
        from bookflow.tenancy.queries import get_service_by_id, list_services

        a, b = two_businesses
        a_service = (await list_services(async_session, a.id))[0]

        assert await get_service_by_id(async_session, a.id, a_service.id) is not None
        assert await get_service_by_id(async_session, b.id, a_service.id) is None

    @pytest.mark.asyncio
    async def test_same_email_is_separate_customer_per_business(self, async_session, two_businesses):
        from bookflow.tenancy.queries import list_customers, list_services

        a, b = two_businesses
        manager = BookingManager(async_session)
        for business in (a, b):
            service = (await list_services(async_session, business.id))[0]
            await manager.create_booking(
                business_id=business.id,
                customer_name="Ana",
                customer_email="ana@example.com",
                service_id=service.id,
                date="2030-01-07",
                time="9:00 AM",
            )

        a_customers = await list_customers(async_session, a.id)
        b_customers = await list_customers(async_session, b.id)
        assert len(a_customers) == len(b_customers) == 1
        assert a_customers[0].id != b_customers[0].id
        assert a_customers[0].total_bookings == 1

    @pytest.mark.asyncio
    async def test_bookings_do_not_block_other_business_slots(self, async_session, two_businesses):
        from bookflow.tenancy.queries import list_bookings, list_services

        a, b = two_businesses
        manager = BookingManager(async_session)
        a_service = (await list_services(async_session, a.id))[0]
        await manager.create_booking(
            business_id=a.id,
            customer_name="Ana",
            customer_email="ana@example.com",
            service_id=a_service.id,
            date="2030-01-07",
            time="9:00 AM",
        )

        b_slots = await manager.get_available_slots(b.id, "2030-01-07")
        assert all(slot.available for slot in b_slots.slots)
        assert await list_bookings(async_session, b.id) == []

    @pytest.mark.asyncio
    async def test_booking_lookup_validates_business(self, async_session, two_businesses):
        from bookflow.tenancy.queries import get_booking_by_id, list_services

        a, b = two_businesses
        a_service = (await list_services(async_session, a.id))[0]
        booking = await BookingManager(async_session).create_booking(
            business_id=a.id,
            customer_name="Ana",
            customer_email="ana@example.com",
            service_id=a_service.id,
            date="2030-01-07",
            time="9:00 AM",
        )

        assert await get_booking_by_id(async_session, a.id, booking.id) is not None
        assert await get_booking_by_id(async_session, b.id, booking.id) is None

    @pytest.mark.asyncio
    async def test_http_routes_are_scoped(self, client, two_businesses):
        a, b = two_businesses

        a_services = (await client.get(f"/businesses/{a.id}/services")).json()
        b_services = (await client.get("/businesses/shop-b/services")).json()

        assert [s["businessId"] for s in a_services] == [a.id]
        assert [s["businessId"] for s in b_services] == [b.id]

        response = await client.post(
            f"/businesses/{b.id}/bookings",
            json={
                "customerName": "Ana",
                "customerEmail": "ana@example.com",
                "serviceId": a_services[0]["id"],
                "date": "2030-01-07",
                "time": "9:00 AM",
            },
        )
        assert response.status_code == 404
