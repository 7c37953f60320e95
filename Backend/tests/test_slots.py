"""
Slot generation and time parsing tests.

Pure functions only: no database needed.

Run with: pytest Backend/tests/test_slots.py -v
"""
from dataclasses import dataclass
from datetime import date

import pytest

from bookflow.slots import (
    compute_slots,
    day_of_week,
    format_slot_label,
    parse_hhmm,
    parse_iso_date,
    parse_time_label,
)

MONDAY = date(2030, 1, 7)
SUNDAY = date(2030, 1, 6)


@dataclass
class Window:
    day_of_week: int
    start_time: str
    end_time: str
    is_active: bool = True


@dataclass
class Held:
    start_minute: int
    status: str = "confirmed"


# ────────────────────────────────────────────────────────────────
# Parsing / Formatting
# ────────────────────────────────────────────────────────────────

class TestTimeLabels:
    """12-hour labels and minute-of-day conversions."""

    @pytest.mark.parametrize(
        "minute, label",
        [(0, "12:00 AM"), (570, "9:30 AM"), (720, "12:00 PM"), (780, "1:00 PM"), (1410, "11:30 PM")],
    )
    def test_format_slot_label(self, minute, label):
        assert format_slot_label(minute) == label

    def test_format_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            format_slot_label(1440)

    @pytest.mark.parametrize("text", ["2:00 PM", "02:00pm", " 2:00 pm ", "14:00"])
    def test_parse_accepts_label_and_24h(self, text):
        assert parse_time_label(text) == 14 * 60

    def test_parse_midnight_and_noon(self):
        assert parse_time_label("12:00 AM") == 0
        assert parse_time_label("12:30 PM") == 750

    @pytest.mark.parametrize("text", ["13:00 PM", "0:00 AM", "24:00", "9:5", "noon", ""])
    def test_parse_rejects_garbage(self, text):
        with pytest.raises(ValueError):
            parse_time_label(text)

    def test_parse_hhmm_range(self):
        assert parse_hhmm("23:59") == 1439
        with pytest.raises(ValueError):
            parse_hhmm("12:60")


class TestDates:
    def test_day_of_week_is_sunday_based(self):
        assert day_of_week(SUNDAY) == 0
        assert day_of_week(MONDAY) == 1
        assert day_of_week(date(2030, 1, 12)) == 6

    @pytest.mark.parametrize("text", ["2030-1-7", "07/01/2030", "2030-02-30", "tomorrow"])
    def test_parse_iso_date_is_strict(self, text):
        with pytest.raises(ValueError):
            parse_iso_date(text)


# ────────────────────────────────────────────────────────────────
# Slot Generation
# ────────────────────────────────────────────────────────────────

class TestComputeSlots:
    """Half-hour slot lists for one day."""

    def test_two_hour_window_gives_four_slots(self):
        result = compute_slots(MONDAY, [Window(1, "09:00", "11:00")], [])

        assert not result.closed
        assert [s.time for s in result.slots] == ["9:00 AM", "9:30 AM", "10:00 AM", "10:30 AM"]
        assert all(s.available for s in result.slots)

    def test_booking_blocks_its_slot_only(self):
        result = compute_slots(MONDAY, [Window(1, "09:00", "11:00")], [Held(600)])

        availability = {s.time: s.available for s in result.slots}
        assert availability == {
            "9:00 AM": True,
            "9:30 AM": True,
            "10:00 AM": False,
            "10:30 AM": True,
        }

    def test_cancelled_booking_frees_slot(self):
        result = compute_slots(MONDAY, [Window(1, "09:00", "11:00")], [Held(600, status="cancelled")])
        assert all(s.available for s in result.slots)

    def test_no_window_is_closed(self):
        result = compute_slots(SUNDAY, [Window(1, "09:00", "11:00")], [])
        assert result.closed
        assert result.slots == []

    def test_inactive_window_is_closed(self):
        result = compute_slots(MONDAY, [Window(1, "09:00", "11:00", is_active=False)], [])
        assert result.closed

    def test_window_truncates_to_whole_hours(self):
        result = compute_slots(MONDAY, [Window(1, "09:45", "11:15")], [])
        assert [s.time for s in result.slots] == ["9:00 AM", "9:30 AM", "10:00 AM", "10:30 AM"]

    def test_empty_window_is_open_but_empty(self):
        result = compute_slots(MONDAY, [Window(1, "10:00", "10:30")], [])
        assert not result.closed
        assert result.slots == []

    def test_malformed_window_is_treated_as_closed(self):
        result = compute_slots(MONDAY, [Window(1, "nine", "11:00")], [])
        assert result.closed

    def test_to_dict_shape(self):
        result = compute_slots(MONDAY, [Window(1, "13:00", "14:00")], [])
        assert result.slots[0].to_dict() == {"time": "1:00 PM", "available": True}
