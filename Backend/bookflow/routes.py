"""
Tenant-scoped HTTP routes.

Routes under /businesses/{business_id}/... resolve a BusinessContext from the
path and pass ctx.business_id to every query. Routes addressed by a bare
entity id (/bookings/{id}, /services/{id}, ...) take the tenant from the
entity itself.

Handlers raise domain errors (bookflow.core.errors); main.py turns them
into the standard error envelope.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from .booking_lifecycle import BookingManager, parse_status
from .core.config import get_settings
from .core.db import AsyncSessionLocal, get_session
from .core.errors import NotFoundError, ValidationError
from .core.responses import ErrorEnvelope
from .customers import get_customer_by_email, get_or_create_customer
from .dispatch import SideEffectDispatcher
from .emailer import BookingMailer
from .models import Availability, Booking, Customer, PushToken, Service
from .notifications import PushNotifier
from .schemas import (
    AvailabilityBulkRequest,
    AvailabilityDayInput,
    AvailabilityResponse,
    BookingCreate,
    BookingResponse,
    BookingUpdate,
    BookingWithNames,
    CustomerCreate,
    CustomerResponse,
    CustomerUpdate,
    DemoDataRequest,
    DemoDataResponse,
    NotificationResult,
    PushDevice,
    PushTokenCreate,
    PushTokenDelete,
    PushTokenResponse,
    PushTokenSummary,
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
    SlotsResponse,
    StatsResponse,
)
from .seed import seed_demo_data
from .slots import parse_hhmm
from .stats import booking_with_names, get_dashboard_stats
from .tenancy.context import BusinessContext, get_business_context, require_business
from .tenancy.queries import (
    get_availability_for_day,
    get_push_token,
    list_active_push_tokens,
    list_availability,
    list_bookings,
    list_customers,
    list_services,
    service_has_bookings,
)

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()

CLOSED_MESSAGE = "Business is closed on this day"

BOOKING_ERRORS = {404: {"model": ErrorEnvelope}, 409: {"model": ErrorEnvelope}}


# ────────────────────────────────────────────────────────────────
# Dependencies
# ────────────────────────────────────────────────────────────────

_dispatcher = SideEffectDispatcher(timeout_seconds=settings.side_effect_timeout_seconds)


def get_dispatcher() -> SideEffectDispatcher:
    return _dispatcher


def get_push_notifier() -> PushNotifier:
    return PushNotifier(
        AsyncSessionLocal,
        settings.expo_push_url,
        timeout=settings.side_effect_timeout_seconds,
    )


def get_mailer() -> BookingMailer:
    return BookingMailer(settings)


def get_booking_manager(
    session: AsyncSession = Depends(get_session),
    dispatcher: SideEffectDispatcher = Depends(get_dispatcher),
    notifier: PushNotifier = Depends(get_push_notifier),
    mailer: BookingMailer = Depends(get_mailer),
) -> BookingManager:
    return BookingManager(session, dispatcher=dispatcher, notifier=notifier, mailer=mailer)


async def _require_entity(session: AsyncSession, model, entity_id: str, label: str):
    entity = await session.get(model, entity_id)
    if not entity:
        raise NotFoundError(f"{label} not found", details={"id": entity_id})
    return entity


# ────────────────────────────────────────────────────────────────
# Services
# ────────────────────────────────────────────────────────────────

@router.get("/businesses/{business_id}/services", response_model=list[ServiceResponse])
async def list_business_services(
    active_only: bool = Query(False, alias="activeOnly"),
    ctx: BusinessContext = Depends(get_business_context),
    session: AsyncSession = Depends(get_session),
):
    return await list_services(session, ctx.business_id, active_only=active_only)


@router.get("/services/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: str = Path(...),
    session: AsyncSession = Depends(get_session),
):
    return await _require_entity(session, Service, service_id, "Service")


@router.post("/businesses/{business_id}/services", response_model=ServiceResponse, status_code=201)
async def create_service(
    request: ServiceCreate,
    ctx: BusinessContext = Depends(get_business_context),
    session: AsyncSession = Depends(get_session),
):
    service = Service(business_id=ctx.business_id, **request.model_dump())
    session.add(service)
    await session.commit()
    await session.refresh(service)
    logger.info(f"Created service '{service.name}' for business {ctx.business_id}")
    return service


@router.patch("/services/{service_id}", response_model=ServiceResponse)
async def update_service(
    request: ServiceUpdate,
    service_id: str = Path(...),
    session: AsyncSession = Depends(get_session),
):
    """Price changes never touch existing bookings: their totalPrice is a snapshot."""
    service = await _require_entity(session, Service, service_id, "Service")
    for field_name, value in request.model_dump(exclude_unset=True).items():
        if value is not None or field_name == "description":
            setattr(service, field_name, value)
    await session.commit()
    await session.refresh(service)
    return service


@router.delete("/services/{service_id}", status_code=204)
async def delete_service(
    service_id: str = Path(...),
    session: AsyncSession = Depends(get_session),
):
    """
    Delete a service. If bookings still reference it, it is deactivated
    instead so those bookings keep their service.
    """
    service = await _require_entity(session, Service, service_id, "Service")
    if await service_has_bookings(session, service.business_id, service.id):
        service.is_active = False
        logger.info(f"Service {service.id} has bookings; deactivated instead of deleted")
    else:
        await session.delete(service)
    await session.commit()
    return Response(status_code=204)


# ────────────────────────────────────────────────────────────────
# Customers
# ────────────────────────────────────────────────────────────────

@router.get("/businesses/{business_id}/customers", response_model=list[CustomerResponse])
async def list_business_customers(
    ctx: BusinessContext = Depends(get_business_context),
    session: AsyncSession = Depends(get_session),
):
    return await list_customers(session, ctx.business_id)


@router.get("/customers/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: str = Path(...),
    session: AsyncSession = Depends(get_session),
):
    return await _require_entity(session, Customer, customer_id, "Customer")


@router.post("/businesses/{business_id}/customers", response_model=CustomerResponse, status_code=201)
async def create_customer(
    request: CustomerCreate,
    response: Response,
    ctx: BusinessContext = Depends(get_business_context),
    session: AsyncSession = Depends(get_session),
):
    """Idempotent by email: an existing customer is returned with 200."""
    existing = await get_customer_by_email(session, ctx.business_id, request.email)
    if existing:
        response.status_code = status.HTTP_200_OK
        return existing
    customer, _ = await get_or_create_customer(
        session, ctx.business_id, request.email, request.name, request.phone
    )
    await session.commit()
    return customer


@router.patch("/customers/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    request: CustomerUpdate,
    customer_id: str = Path(...),
    session: AsyncSession = Depends(get_session),
):
    customer = await _require_entity(session, Customer, customer_id, "Customer")
    updates = request.model_dump(exclude_unset=True)
    if updates.get("name"):
        customer.name = updates["name"].strip()
    if "phone" in updates:
        customer.phone = updates["phone"]
    await session.commit()
    return customer


# ────────────────────────────────────────────────────────────────
# Bookings
# ────────────────────────────────────────────────────────────────

@router.get("/businesses/{business_id}/bookings", response_model=list[BookingWithNames])
async def list_business_bookings(
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    status_filter: Optional[str] = Query(None, alias="status"),
    ctx: BusinessContext = Depends(get_business_context),
    session: AsyncSession = Depends(get_session),
):
    """Bookings with customer and service names, latest date and time first."""
    status_value = parse_status(status_filter) if status_filter else None
    bookings = await list_bookings(session, ctx.business_id, on_date=date, status=status_value)

    customers = {c.id: c.name for c in await list_customers(session, ctx.business_id)}
    services = {s.id: s.name for s in await list_services(session, ctx.business_id)}
    return [
        booking_with_names(
            booking,
            customers.get(booking.customer_id, "Unknown"),
            services.get(booking.service_id, "Unknown"),
        )
        for booking in bookings
    ]


@router.get("/bookings/{booking_id}", response_model=BookingResponse, responses={404: {"model": ErrorEnvelope}})
async def get_booking(
    booking_id: str = Path(...),
    session: AsyncSession = Depends(get_session),
):
    return await _require_entity(session, Booking, booking_id, "Booking")


@router.post(
    "/businesses/{business_id}/bookings",
    response_model=BookingResponse,
    status_code=201,
    responses=BOOKING_ERRORS,
)
async def create_booking(
    request: BookingCreate,
    ctx: BusinessContext = Depends(get_business_context),
    manager: BookingManager = Depends(get_booking_manager),
):
    """
    Book a slot.

    - 201: created (email and owner push are sent in the background)
    - 404: unknown business or service
    - 409: slot already taken
    - 422: invalid date, time, email or status
    """
    return await manager.create_booking(
        business_id=ctx.business_id,
        customer_name=request.customer_name,
        customer_email=request.customer_email,
        customer_phone=request.customer_phone,
        service_id=request.service_id,
        date=request.date,
        time=request.time,
        notes=request.notes,
        status=request.status,
    )


@router.patch("/bookings/{booking_id}", response_model=BookingResponse, responses=BOOKING_ERRORS)
async def update_booking(
    request: BookingUpdate,
    booking_id: str = Path(...),
    manager: BookingManager = Depends(get_booking_manager),
):
    """
    Update status, notes, price, or reschedule.

    - 409 STATE_CONFLICT: status change not allowed, or rescheduling a
      completed/cancelled booking
    - 409 CONFLICT: new slot already taken
    """
    return await manager.update_booking(booking_id, **request.model_dump(exclude_unset=True))


# ────────────────────────────────────────────────────────────────
# Availability & Slots
# ────────────────────────────────────────────────────────────────

async def _upsert_availability(
    session: AsyncSession,
    business_id: str,
    day_of_week: int,
    start_time: str,
    end_time: str,
    is_active: bool,
) -> Availability:
    row = await get_availability_for_day(session, business_id, day_of_week)
    if row is None:
        row = Availability(business_id=business_id, day_of_week=day_of_week)
        session.add(row)
    row.start_time = start_time
    row.end_time = end_time
    row.is_active = is_active
    return row


@router.get("/businesses/{business_id}/availability", response_model=list[AvailabilityResponse])
async def get_availability(
    ctx: BusinessContext = Depends(get_business_context),
    session: AsyncSession = Depends(get_session),
):
    return await list_availability(session, ctx.business_id)


@router.put("/businesses/{business_id}/availability", response_model=list[AvailabilityResponse])
async def set_availability(
    request: AvailabilityBulkRequest,
    ctx: BusinessContext = Depends(get_business_context),
    session: AsyncSession = Depends(get_session),
):
    """Upsert several days at once. Days not in the request are left unchanged."""
    for schedule in request.schedules:
        await _upsert_availability(
            session,
            ctx.business_id,
            schedule.day_of_week,
            schedule.start_time,
            schedule.end_time,
            schedule.is_active,
        )
    await session.commit()
    return await list_availability(session, ctx.business_id)


@router.put("/businesses/{business_id}/availability/{day_of_week}", response_model=AvailabilityResponse)
async def set_day_availability(
    request: AvailabilityDayInput,
    day_of_week: int = Path(..., ge=0, le=6),
    ctx: BusinessContext = Depends(get_business_context),
    session: AsyncSession = Depends(get_session),
):
    start_time = request.start_time or settings.default_open_time
    end_time = request.end_time or settings.default_close_time
    if request.is_active and parse_hhmm(start_time) >= parse_hhmm(end_time):
        raise ValidationError(
            "startTime must be before endTime",
            details={"startTime": start_time, "endTime": end_time},
        )

    row = await _upsert_availability(
        session,
        ctx.business_id,
        day_of_week,
        start_time,
        end_time,
        request.is_active,
    )
    await session.commit()
    await session.refresh(row)
    return row


@router.get("/businesses/{business_id}/slots/{date}", response_model=SlotsResponse, response_model_exclude_none=True)
async def get_slots(
    date: str,
    service_id: Optional[str] = Query(None, alias="serviceId"),
    ctx: BusinessContext = Depends(get_business_context),
    manager: BookingManager = Depends(get_booking_manager),
):
    """Half-hour slots for one date; closed days return no slots and a message."""
    result = await manager.get_available_slots(ctx.business_id, date, service_id=service_id)
    if result.closed:
        return SlotsResponse(slots=[], message=CLOSED_MESSAGE)
    return SlotsResponse(slots=[slot.to_dict() for slot in result.slots])


# ────────────────────────────────────────────────────────────────
# Stats & Demo data
# ────────────────────────────────────────────────────────────────

@router.get("/businesses/{business_id}/stats", response_model=StatsResponse)
async def get_stats(
    ctx: BusinessContext = Depends(get_business_context),
    session: AsyncSession = Depends(get_session),
):
    return await get_dashboard_stats(session, ctx.business_id)


@router.post("/businesses/{business_id}/demo-data", response_model=DemoDataResponse)
async def init_demo_data(
    request: Optional[DemoDataRequest] = None,
    ctx: BusinessContext = Depends(get_business_context),
    session: AsyncSession = Depends(get_session),
):
    business_type = request.business_type if request else DemoDataRequest().business_type
    seeded = await seed_demo_data(session, ctx.business_id, business_type)
    message = "Demo data initialized" if seeded else "Business already has data"
    return DemoDataResponse(message=message, seeded=seeded)


# ────────────────────────────────────────────────────────────────
# Push tokens
# ────────────────────────────────────────────────────────────────

@router.post("/push-tokens", response_model=PushTokenResponse, status_code=201)
async def register_push_token(
    request: PushTokenCreate,
    session: AsyncSession = Depends(get_session),
):
    """Register a device. A known token is reactivated and moved to this business."""
    await require_business(session, request.business_id)
    token = await get_push_token(session, request.token)
    if token is None:
        token = PushToken(token=request.token)
        session.add(token)
    token.business_id = request.business_id
    token.platform = request.platform
    token.device_name = request.device_name
    token.is_active = True
    await session.commit()
    await session.refresh(token)
    return token


@router.delete("/push-tokens", status_code=204)
async def delete_push_token(
    request: PushTokenDelete,
    session: AsyncSession = Depends(get_session),
):
    await session.execute(
        delete(PushToken).where(
            PushToken.token == request.token,
            PushToken.business_id == request.business_id,
        )
    )
    await session.commit()
    return Response(status_code=204)


@router.get("/businesses/{business_id}/push-tokens", response_model=PushTokenSummary)
async def get_push_tokens(
    ctx: BusinessContext = Depends(get_business_context),
    session: AsyncSession = Depends(get_session),
):
    """Device count and metadata only; tokens themselves are never returned."""
    tokens = await list_active_push_tokens(session, ctx.business_id)
    return PushTokenSummary(
        count=len(tokens),
        devices=[PushDevice.model_validate(token) for token in tokens],
    )


@router.post("/businesses/{business_id}/test-notification", response_model=NotificationResult)
async def send_test_notification(
    ctx: BusinessContext = Depends(get_business_context),
    notifier: PushNotifier = Depends(get_push_notifier),
):
    result = await notifier.test(ctx.business_id)
    return NotificationResult(success=result.success, sent_count=result.sent_count, errors=result.errors)
