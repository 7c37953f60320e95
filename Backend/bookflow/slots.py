"""
Slot generation for the booking calendar.

Times are handled as minute-of-day integers (0..1439) everywhere inside the
service. The 12-hour display label ("2:00 PM") is only produced at the edge,
by format_slot_label(), and parse_time_label() turns whatever a client sends
back into the same integer. Conflict detection therefore compares integers,
never strings.

compute_slots() is a pure function: it takes the business's weekly
availability rows and the bookings already on the date and returns the
candidate slots. It works with ORM rows or any object exposing the same
attributes:

    availability: day_of_week, start_time ("HH:MM"), end_time, is_active
    bookings:     start_minute, status
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
SLOT_STEP_MINUTES = 30
CANCELLED_STATUS = "cancelled"

_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_LABEL_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*([AaPp][Mm])$")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ────────────────────────────────────────────────────────────────
# Parsing / Formatting
# ────────────────────────────────────────────────────────────────

def parse_hhmm(value: str) -> int:
    """
    Parse a 24-hour "HH:MM" string into minute-of-day.

    Raises ValueError for anything that is not a real wall-clock time
    ("24:00", "9:5", "ab:cd" are all rejected).
    """
    match = _HHMM_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Time out of range: {value!r}")
    return hour * 60 + minute


def format_slot_label(minute_of_day: int) -> str:
    """Format minute-of-day as a 12-hour label, e.g. 780 -> '1:00 PM'."""
    if not 0 <= minute_of_day < MINUTES_PER_DAY:
        raise ValueError(f"minute_of_day out of range: {minute_of_day}")
    hour, minute = divmod(minute_of_day, 60)
    suffix = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {suffix}"


def parse_time_label(value: str) -> int:
    """
    Parse a booking time into minute-of-day.

    Accepts the 12-hour labels produced by format_slot_label ("2:00 PM",
    "02:00pm") as well as 24-hour "14:00".
    """
    if not isinstance(value, str):
        raise ValueError(f"Invalid time {value!r}")
    text = value.strip()
    match = _LABEL_RE.match(text)
    if not match:
        return parse_hhmm(text)

    hour, minute, suffix = int(match.group(1)), int(match.group(2)), match.group(3).upper()
    if not 1 <= hour <= 12 or minute > 59:
        raise ValueError(f"Time out of range: {value!r}")
    hour = hour % 12
    if suffix == "PM":
        hour += 12
    return hour * 60 + minute


def parse_iso_date(value: str) -> date:
    """Parse a strict YYYY-MM-DD calendar date."""
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value):
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    return date.fromisoformat(value)


def day_of_week(on_date: date) -> int:
    """Gregorian day of week with Sunday = 0 ... Saturday = 6."""
    return (on_date.weekday() + 1) % 7


# ────────────────────────────────────────────────────────────────
# Slot Generation
# ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TimeSlot:
    minute: int
    available: bool

    @property
    def time(self) -> str:
        return format_slot_label(self.minute)

    def to_dict(self) -> dict:
        return {"time": self.time, "available": self.available}


@dataclass(frozen=True)
class SlotResult:
    slots: list[TimeSlot] = field(default_factory=list)
    closed: bool = False


def find_day_window(availability: Iterable, weekday: int) -> Optional[object]:
    """Return the active availability row for a weekday (Sunday = 0), if any."""
    for entry in availability:
        if entry.day_of_week == weekday and entry.is_active:
            return entry
    return None


def compute_slots(on_date: date, availability: Iterable, bookings_on_date: Iterable) -> SlotResult:
    """
    Compute the half-hour slots for one business on one date.

    - No active availability for the weekday -> SlotResult(closed=True)
    - Malformed stored times -> treated as closed (logged, never raised)
    - start hour >= end hour -> open but empty
    - Otherwise two slots per hour in [start_hour, end_hour), on the hour
      then half past, each unavailable if a non-cancelled booking starts at
      that minute.

    The window is truncated to whole hours: "09:45"-"11:15" yields the same
    slots as "09:00"-"11:00".
    """
    window = find_day_window(availability, day_of_week(on_date))
    if window is None:
        return SlotResult(slots=[], closed=True)

    try:
        start_hour = parse_hhmm(window.start_time) // 60
        end_hour = parse_hhmm(window.end_time) // 60
    except ValueError:
        logger.warning(
            f"Malformed availability window {window.start_time!r}-{window.end_time!r} "
            f"for weekday {window.day_of_week}; treating {on_date} as closed"
        )
        return SlotResult(slots=[], closed=True)

    booked_minutes = {
        booking.start_minute
        for booking in bookings_on_date
        if _status_value(booking.status) != CANCELLED_STATUS
    }

    slots = []
    for hour in range(start_hour, end_hour):
        for offset in (0, SLOT_STEP_MINUTES):
            minute = hour * 60 + offset
            slots.append(TimeSlot(minute=minute, available=minute not in booked_minutes))

    return SlotResult(slots=slots, closed=False)


def _status_value(status) -> str:
    return getattr(status, "value", status)
