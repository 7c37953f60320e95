"""
Request/response models for the HTTP API.

The mobile client speaks camelCase JSON, so every model uses a camelCase
alias generator while the Python side stays snake_case. Money is always
integer cents. Booking times go over the wire as 12-hour labels ("2:00 PM").
"""

import re
from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .models import BookingStatus
from .slots import parse_hhmm, parse_iso_date, parse_time_label


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _check_email(value: str) -> str:
    normalized = value.strip().lower()
    if not _EMAIL_RE.match(normalized):
        raise ValueError("Invalid email address")
    return normalized


def _check_date(value: str) -> str:
    parse_iso_date(value)
    return value


def _check_time(value: str) -> str:
    parse_time_label(value)
    return value.strip()


def _check_hhmm(value: str) -> str:
    parse_hhmm(value)
    return value.strip()


Email = Annotated[str, Field(max_length=255), AfterValidator(_check_email)]
IsoDate = Annotated[str, AfterValidator(_check_date)]
SlotTime = Annotated[str, AfterValidator(_check_time)]
ClockTime = Annotated[str, AfterValidator(_check_hhmm)]


# ────────────────────────────────────────────────────────────────
# Businesses
# ────────────────────────────────────────────────────────────────

class BusinessCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    timezone: str = "America/New_York"
    notifications_enabled: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Business name cannot be empty or whitespace")
        return v.strip()


class BusinessUpdate(CamelModel):
    """Partial update. The slug is deliberately absent: it is immutable."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    timezone: Optional[str] = None
    notifications_enabled: Optional[bool] = None


class BusinessResponse(CamelModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    timezone: str
    notifications_enabled: bool
    booking_url: Optional[str] = None
    created_at: Optional[datetime] = None


# ────────────────────────────────────────────────────────────────
# Services
# ────────────────────────────────────────────────────────────────

class ServiceCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    duration: int = Field(..., gt=0, description="Minutes")
    price: int = Field(..., ge=0, description="Cents")
    is_active: bool = True


class ServiceUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    duration: Optional[int] = Field(None, gt=0)
    price: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ServiceResponse(CamelModel):
    id: str
    business_id: str
    name: str
    description: Optional[str] = None
    duration: int
    price: int
    is_active: bool


# ────────────────────────────────────────────────────────────────
# Customers
# ────────────────────────────────────────────────────────────────

class CustomerCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Email
    phone: Optional[str] = None


class CustomerUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = None


class CustomerResponse(CamelModel):
    id: str
    business_id: str
    name: str
    email: str
    phone: Optional[str] = None
    total_bookings: int


# ────────────────────────────────────────────────────────────────
# Bookings
# ────────────────────────────────────────────────────────────────

class BookingCreate(CamelModel):
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: Email
    customer_phone: Optional[str] = None
    service_id: str
    date: IsoDate = Field(..., description="YYYY-MM-DD")
    time: SlotTime = Field(..., description='Slot label, e.g. "2:00 PM"')
    notes: Optional[str] = None
    status: str = BookingStatus.PENDING.value


class BookingUpdate(CamelModel):
    status: Optional[str] = None
    notes: Optional[str] = None
    total_price: Optional[int] = Field(None, ge=0)
    date: Optional[IsoDate] = None
    time: Optional[SlotTime] = None


class BookingResponse(CamelModel):
    id: str
    business_id: str
    customer_id: str
    service_id: str
    date: str
    time: str
    status: BookingStatus
    total_price: int
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingWithNames(BookingResponse):
    customer_name: Optional[str] = None
    service_name: Optional[str] = None


# ────────────────────────────────────────────────────────────────
# Availability & Slots
# ────────────────────────────────────────────────────────────────

class AvailabilityInput(CamelModel):
    day_of_week: int = Field(..., ge=0, le=6)
    start_time: ClockTime
    end_time: ClockTime
    is_active: bool = True

    @model_validator(mode="after")
    def check_window(self):
        if self.is_active and parse_hhmm(self.start_time) >= parse_hhmm(self.end_time):
            raise ValueError("startTime must be before endTime")
        return self


class AvailabilityDayInput(CamelModel):
    """Single-day upsert; missing times fall back to the configured defaults."""

    start_time: Optional[ClockTime] = None
    end_time: Optional[ClockTime] = None
    is_active: bool = True


class AvailabilityBulkRequest(CamelModel):
    schedules: list[AvailabilityInput]


class AvailabilityResponse(CamelModel):
    id: str
    business_id: str
    day_of_week: int
    start_time: str
    end_time: str
    is_active: bool


class TimeSlotResponse(CamelModel):
    time: str
    available: bool


class SlotsResponse(CamelModel):
    slots: list[TimeSlotResponse]
    message: Optional[str] = None


# ────────────────────────────────────────────────────────────────
# Stats
# ────────────────────────────────────────────────────────────────

class WeeklyPoint(CamelModel):
    date: str
    day: str
    bookings: int
    revenue: int


class StatsResponse(CamelModel):
    total_revenue: int
    today_bookings: int
    total_bookings: int
    total_customers: int
    total_services: int
    pending_bookings: int
    weekly_data: list[WeeklyPoint]
    recent_bookings: list[BookingWithNames]


# ────────────────────────────────────────────────────────────────
# Push tokens & demo data
# ────────────────────────────────────────────────────────────────

class PushTokenCreate(CamelModel):
    business_id: str
    token: str = Field(..., min_length=1, max_length=255)
    platform: Optional[str] = None
    device_name: Optional[str] = None


class PushTokenDelete(CamelModel):
    business_id: str
    token: str = Field(..., min_length=1)


class PushTokenResponse(CamelModel):
    id: str
    business_id: str
    token: str
    platform: Optional[str] = None
    device_name: Optional[str] = None
    is_active: bool


class PushDevice(CamelModel):
    """A registered device, without its token."""

    platform: Optional[str] = None
    device_name: Optional[str] = None
    created_at: Optional[datetime] = None


class PushTokenSummary(CamelModel):
    count: int
    devices: list[PushDevice]


class NotificationResult(CamelModel):
    success: bool
    sent_count: int
    errors: list[str] = []


class DemoDataRequest(CamelModel):
    business_type: str = "salon"


class DemoDataResponse(CamelModel):
    message: str
    seeded: bool
