import base64
import html
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import httpx

from .core.config import Settings, get_settings
from .slots import parse_iso_date

logger = logging.getLogger(__name__)

RESEND_EMAILS_URL = "https://api.resend.com/emails"


@dataclass(frozen=True)
class BookingConfirmation:
    booking_id: str
    customer_name: str
    customer_email: str
    service_name: str
    business_name: str
    date: str  # YYYY-MM-DD
    start_minute: int
    time: str  # display label
    duration_minutes: int
    price: int  # cents
    business_address: Optional[str] = None

    @property
    def confirmation_number(self) -> str:
        return self.booking_id[:8].upper()


# ────────────────────────────────────────────────────────────────
# iCalendar
# ────────────────────────────────────────────────────────────────

def format_utc_timestamp(value: datetime) -> str:
    """Format datetime as UTC timestamp for iCalendar (RFC 5545)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y%m%dT%H%M%SZ")


def format_floating_timestamp(value: datetime) -> str:
    """Local wall-clock time with no zone; calendars show it as-is."""
    return value.strftime("%Y%m%dT%H%M%S")


def escape_ical_text(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def booking_window(on_date: date, start_minute: int, duration_minutes: int) -> tuple[datetime, datetime]:
    start_at = datetime(on_date.year, on_date.month, on_date.day) + timedelta(minutes=start_minute)
    return start_at, start_at + timedelta(minutes=duration_minutes)


def build_ics_event(confirmation: BookingConfirmation) -> str:
    start_at, end_at = booking_window(
        parse_iso_date(confirmation.date),
        confirmation.start_minute,
        confirmation.duration_minutes,
    )
    dtstamp = format_utc_timestamp(datetime.now(timezone.utc))
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//BookFlow//Booking//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{confirmation.booking_id}@bookflow",
        f"DTSTAMP:{dtstamp}",
        f"DTSTART:{format_floating_timestamp(start_at)}",
        f"DTEND:{format_floating_timestamp(end_at)}",
        f"SUMMARY:{escape_ical_text(f'{confirmation.service_name} at {confirmation.business_name}')}",
        f"DESCRIPTION:{escape_ical_text(f'Confirmation #{confirmation.confirmation_number}')}",
        f"LOCATION:{escape_ical_text(confirmation.business_address or confirmation.business_name)}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines) + "\r\n"


# ────────────────────────────────────────────────────────────────
# HTML body
# ────────────────────────────────────────────────────────────────

def format_price(cents: int) -> str:
    return f"${cents / 100:.2f}"


def render_confirmation_html(confirmation: BookingConfirmation) -> str:
    formatted_date = parse_iso_date(confirmation.date).strftime("%A, %B %d, %Y")
    esc = html.escape
    rows = [
        ("Confirmation #", confirmation.confirmation_number),
        ("Service", confirmation.service_name),
        ("Date", formatted_date),
        ("Time", confirmation.time),
        ("Total", format_price(confirmation.price)),
    ]
    detail_rows = "\n".join(
        f'<tr><td style="color: #666666; padding: 12px 0;">{esc(label)}</td>'
        f'<td style="font-weight: 500; text-align: right;">{esc(value)}</td></tr>'
        for label, value in rows
    )
    return f"""
    <html>
    <body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto;">
        <div style="background: #000000; color: #ffffff; padding: 40px 30px; text-align: center;">
            <h1 style="margin: 0;">{esc(confirmation.business_name)}</h1>
        </div>
        <div style="padding: 40px 30px;">
            <h2 style="text-align: center;">Booking Confirmed!</h2>
            <p style="color: #666666; text-align: center;">Thank you for your booking, {esc(confirmation.customer_name)}.</p>
            <table style="width: 100%; background: #f8f8f8; border-radius: 12px; padding: 24px;">
                {detail_rows}
            </table>
            <p style="color: #666666; font-size: 14px; text-align: center;">
                If you need to cancel or reschedule, please contact us directly.
            </p>
        </div>
        <p style="color: #888888; font-size: 14px; text-align: center;">Powered by BookFlow</p>
    </body>
    </html>
    """


# ────────────────────────────────────────────────────────────────
# Sending
# ────────────────────────────────────────────────────────────────

async def send_booking_email_with_ics(
    to_email: str,
    subject: str,
    html_body: str,
    ics_filename: str,
    ics_text: str,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    settings = settings or get_settings()
    if not settings.email_enabled:
        logger.warning("Resend is not configured; skipping email send.")
        return False

    attachment_content = base64.b64encode(ics_text.encode("utf-8")).decode("ascii")
    payload = {
        "from": settings.resend_from,
        "to": to_email,
        "subject": subject,
        "html": html_body,
        "attachments": [
            {
                "filename": ics_filename,
                "content": attachment_content,
                "content_type": "text/calendar; charset=utf-8",
            }
        ],
    }

    headers = {
        "Authorization": f"Bearer {settings.resend_api_key}",
        "Content-Type": "application/json",
    }

    async with httpx.AsyncClient(timeout=10, transport=transport) as client:
        response = await client.post(RESEND_EMAILS_URL, json=payload, headers=headers)
        response.raise_for_status()
    return True


class BookingMailer:
    """Sends customer-facing booking emails. Never raises."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport

    async def send_confirmation(self, confirmation: BookingConfirmation) -> bool:
        try:
            sent = await send_booking_email_with_ics(
                to_email=confirmation.customer_email,
                subject=f"Booking Confirmed - {confirmation.business_name}",
                html_body=render_confirmation_html(confirmation),
                ics_filename=f"booking-{confirmation.confirmation_number}.ics",
                ics_text=build_ics_event(confirmation),
                settings=self.settings,
                transport=self.transport,
            )
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Resend rejected confirmation for booking {confirmation.booking_id}: "
                f"{e.response.status_code} {e.response.text}"
            )
            return False
        except Exception as e:
            logger.exception(f"Failed to send booking confirmation {confirmation.booking_id}: {e}")
            return False

        if sent:
            logger.info(f"Booking confirmation email sent for booking {confirmation.booking_id}")
        return sent
