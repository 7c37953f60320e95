"""
Push notifier and side-effect dispatcher tests.

The Expo endpoint is replaced by an httpx MockTransport (see conftest).
"""
import asyncio
import logging

import pytest
from sqlalchemy import select

from bookflow.dispatch import SideEffectDispatcher
from bookflow.models import PushToken
from bookflow.notifications import BookingSummary


@pytest.fixture
async def devices(async_session, business):
    tokens = [
        PushToken(business_id=business.id, token="ExponentPushToken[phone-1]", platform="ios"),
        PushToken(business_id=business.id, token="ExponentPushToken[phone-2]", platform="android"),
        PushToken(business_id=business.id, token="ExponentPushToken[old]", is_active=False),
    ]
    async_session.add_all(tokens)
    await async_session.commit()
    return tokens


# ────────────────────────────────────────────────────────────────
# PushNotifier
# ────────────────────────────────────────────────────────────────

class TestPushNotifier:

    @pytest.mark.asyncio
    async def test_no_devices_is_success(self, notifier, business, push_recorder):
        result = await notifier.test(business.id)

        assert result.success is True
        assert result.sent_count == 0
        assert push_recorder.requests == []

    @pytest.mark.asyncio
    async def test_sends_to_active_devices_only(self, notifier, business, devices, push_recorder):
        result = await notifier.test(business.id)

        assert result.success is True
        assert result.sent_count == 2
        sent_to = sorted(message["to"] for message in push_recorder.requests[0])
        assert sent_to == ["ExponentPushToken[phone-1]", "ExponentPushToken[phone-2]"]
        assert all(m["priority"] == "high" and m["sound"] == "default" for m in push_recorder.requests[0])

    @pytest.mark.asyncio
    async def test_booking_event_payload(self, notifier, business, devices, push_recorder):
        summary = BookingSummary(
            business_id=business.id,
            customer_name="Ana",
            service_name="Haircut",
            date="2030-01-07",
            time="10:00 AM",
        )
        await notifier.booking_cancelled(summary)

        message = push_recorder.requests[0][0]
        assert message["title"] == "Booking Cancelled"
        assert "Ana's Haircut" in message["body"]
        assert message["data"]["type"] == "booking_cancelled"

    @pytest.mark.asyncio
    async def test_unregistered_device_is_deactivated(
        self, notifier, business, devices, push_recorder, session_factory
    ):
        push_recorder.tickets = [
            {"status": "ok", "id": "t1"},
            {"status": "error", "message": "not registered", "details": {"error": "DeviceNotRegistered"}},
        ]
        result = await notifier.test(business.id)

        assert result.success is False
        assert result.sent_count == 1
        assert len(result.errors) == 1
        assert result.errors[0].endswith("...: not registered")

        stale = push_recorder.requests[0][1]["to"]
        async with session_factory() as session:
            row = await session.scalar(select(PushToken).where(PushToken.token == stale))
            assert row.is_active is False

    @pytest.mark.asyncio
    async def test_http_error_is_reported_not_raised(self, notifier, business, devices, push_recorder):
        push_recorder.status_code = 503
        result = await notifier.test(business.id)

        assert result.success is False
        assert result.sent_count == 0
        assert result.errors == ["push service unavailable"]


# ────────────────────────────────────────────────────────────────
# SideEffectDispatcher
# ────────────────────────────────────────────────────────────────

class TestSideEffectDispatcher:

    @pytest.mark.asyncio
    async def test_runs_and_drains(self):
        dispatcher = SideEffectDispatcher()
        done = []

        async def effect():
            await asyncio.sleep(0)
            done.append(True)

        dispatcher.fire("effect", effect())
        assert dispatcher.pending == 1
        await dispatcher.drain()

        assert done == [True]
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_failure_is_logged_and_swallowed(self, caplog):
        dispatcher = SideEffectDispatcher()

        async def broken():
            raise RuntimeError("smtp down")

        with caplog.at_level(logging.ERROR, logger="bookflow.dispatch"):
            task = dispatcher.fire("email", broken())
            await dispatcher.drain()

        assert task.result() is None
        assert "smtp down" in caplog.text

    @pytest.mark.asyncio
    async def test_timeout(self, caplog):
        dispatcher = SideEffectDispatcher(timeout_seconds=0.01)

        with caplog.at_level(logging.ERROR, logger="bookflow.dispatch"):
            task = dispatcher.fire("slow", asyncio.sleep(1))
            await dispatcher.drain()

        assert task.result() is None
        assert "timed out" in caplog.text
