"""
Owner push notifications via the Expo push API.

Called from the booking flow through the side-effect dispatcher, so every
public method here is best-effort: failures are logged and reported in the
returned PushResult, never raised.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import PushToken
from .tenancy.queries import list_active_push_tokens

logger = logging.getLogger(__name__)

DEVICE_NOT_REGISTERED = "DeviceNotRegistered"


@dataclass
class PushResult:
    success: bool
    sent_count: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class BookingSummary:
    """The fields a booking notification shows to the owner."""

    business_id: str
    customer_name: str
    service_name: str
    date: str
    time: str


class PushNotifier:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        push_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session_factory = session_factory
        self.push_url = push_url
        self.timeout = timeout
        self.transport = transport

    # ────────────────────────────────────────────────────────────────
    # Core sender
    # ────────────────────────────────────────────────────────────────

    async def send(
        self,
        business_id: str,
        title: str,
        body: str,
        data: Optional[dict[str, Any]] = None,
    ) -> PushResult:
        """
        Send one notification to every active device of a business.

        Tickets come back in the same order as the messages. A ticket with
        DeviceNotRegistered deactivates its token so it is not retried.
        """
        try:
            async with self.session_factory() as session:
                tokens = [t.token for t in await list_active_push_tokens(session, business_id)]

            if not tokens:
                return PushResult(success=True)

            messages = [
                {
                    "to": token,
                    "sound": "default",
                    "title": title,
                    "body": body,
                    "data": data or {},
                    "priority": "high",
                }
                for token in tokens
            ]

            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.push_url,
                    json=messages,
                    headers={"Accept": "application/json", "Content-Type": "application/json"},
                )

            if response.status_code >= 400:
                logger.error(f"Expo push API error {response.status_code}: {response.text}")
                return PushResult(success=False, errors=[response.text])

            tickets = response.json().get("data") or []
            errors = []
            sent_count = 0
            stale_tokens = []
            for token, ticket in zip(tokens, tickets):
                if ticket.get("status") == "ok":
                    sent_count += 1
                    continue
                details = ticket.get("details") or {}
                message = ticket.get("message") or details.get("error") or "Unknown error"
                errors.append(f"Token {token[:20]}...: {message}")
                if details.get("error") == DEVICE_NOT_REGISTERED:
                    stale_tokens.append(token)

            if stale_tokens:
                await self._deactivate(stale_tokens)

            if errors:
                logger.warning(f"Push for business {business_id}: {sent_count} sent, {len(errors)} failed")
            else:
                logger.info(f"Push '{title}' sent to {sent_count} device(s) for business {business_id}")
            return PushResult(success=not errors, sent_count=sent_count, errors=errors)

        except Exception as e:
            logger.exception(f"Error sending push notification for business {business_id}: {e}")
            return PushResult(success=False, errors=[str(e)])

    async def _deactivate(self, tokens: list[str]) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(PushToken).where(PushToken.token.in_(tokens)).values(is_active=False)
            )
            await session.commit()
        logger.info(f"Deactivated {len(tokens)} unregistered push token(s)")

    # ────────────────────────────────────────────────────────────────
    # Booking events
    # ────────────────────────────────────────────────────────────────
    # The caller checks Business.notifications_enabled before firing these.

    async def _booking_event(self, summary: BookingSummary, kind: str, title: str, body: str) -> PushResult:
        return await self.send(
            summary.business_id,
            title,
            body,
            {
                "type": kind,
                "customerName": summary.customer_name,
                "serviceName": summary.service_name,
                "date": summary.date,
                "time": summary.time,
            },
        )

    async def booking_created(self, summary: BookingSummary) -> PushResult:
        return await self._booking_event(
            summary,
            "new_booking",
            "New Booking",
            f"{summary.customer_name} booked {summary.service_name} for {summary.date} at {summary.time}",
        )

    async def booking_confirmed(self, summary: BookingSummary) -> PushResult:
        return await self._booking_event(
            summary,
            "booking_confirmed",
            "Booking Confirmed",
            f"{summary.customer_name}'s {summary.service_name} on {summary.date} at {summary.time} has been confirmed",
        )

    async def booking_cancelled(self, summary: BookingSummary) -> PushResult:
        return await self._booking_event(
            summary,
            "booking_cancelled",
            "Booking Cancelled",
            f"{summary.customer_name}'s {summary.service_name} on {summary.date} at {summary.time} has been cancelled",
        )

    async def test(self, business_id: str) -> PushResult:
        return await self.send(
            business_id,
            "Test Notification",
            "This is a test notification from BookFlow. "
            "If you received this, push notifications are working correctly!",
            {"type": "test"},
        )
