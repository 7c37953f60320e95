"""
Booking Lifecycle Manager

Owns every write to a booking: creation, rescheduling, status changes, and
the side effects that follow them.

STATUS GRAPH:
    pending   -> confirmed | cancelled
    confirmed -> completed | cancelled
    completed, cancelled: terminal

Setting a booking to the status it already has is a no-op and sends
nothing.

DOUBLE BOOKING:
    A booking holds its (business, date, start minute) slot unless it is
    cancelled. The application checks for a live booking first so the common
    case gets a clean 409, but the guarantee comes from the partial unique
    index uq_booking_active_slot: when two requests race, the loser's
    commit raises IntegrityError, which becomes ConflictError here.

SIDE EFFECTS:
    Email and push are scheduled on the SideEffectDispatcher only after the
    transaction commits. They carry plain values, never ORM objects, because
    they outlive the request session.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .core.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from .customers import get_or_create_customer, increment_total_bookings, normalize_email
from .dispatch import SideEffectDispatcher
from .emailer import BookingConfirmation, BookingMailer
from .models import Booking, BookingStatus, Business, Customer, Service
from .notifications import BookingSummary, PushNotifier
from .slots import SlotResult, compute_slots, parse_iso_date, parse_time_label
from .tenancy.queries import (
    find_active_booking_at,
    get_booking_by_id,
    get_service_by_id,
    list_availability,
    list_bookings_on_date,
)

logger = logging.getLogger(__name__)

MAX_CREATE_ATTEMPTS = 3

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


# ────────────────────────────────────────────────────────────────
# Status Helpers
# ────────────────────────────────────────────────────────────────

def parse_status(value) -> BookingStatus:
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in BookingStatus)
        raise ValidationError(
            f"Invalid booking status '{value}'. Must be one of: {allowed}",
            details={"status": value},
        )


def validate_transition(current: BookingStatus, requested: BookingStatus) -> bool:
    """
    Check a status change against the graph.

    Returns False when nothing changes (same status), True for a legal
    transition. Raises InvalidTransitionError otherwise.
    """
    if current == requested:
        return False
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, requested.value)
    return True


def _parse_date(value: str) -> str:
    try:
        return parse_iso_date(value).isoformat()
    except ValueError as e:
        raise ValidationError(str(e), details={"date": value})


def _parse_time(value: str) -> int:
    try:
        return parse_time_label(value)
    except ValueError as e:
        raise ValidationError(str(e), details={"time": value})


@dataclass
class _BookingNames:
    business: Business
    customer_name: str
    service_name: str


# ────────────────────────────────────────────────────────────────
# Manager
# ────────────────────────────────────────────────────────────────

class BookingManager:
    """
    Booking operations bound to one request session.

    The tenant is always passed in explicitly; nothing here reads a
    process-wide business.
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: Optional[SideEffectDispatcher] = None,
        notifier: Optional[PushNotifier] = None,
        mailer: Optional[BookingMailer] = None,
        max_attempts: int = MAX_CREATE_ATTEMPTS,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.notifier = notifier
        self.mailer = mailer
        self.max_attempts = max_attempts

    # ── Create ──────────────────────────────────────────────────

    async def create_booking(
        self,
        business_id: str,
        customer_name: str,
        customer_email: str,
        service_id: str,
        date: str,
        time: str,
        notes: Optional[str] = None,
        status: str = BookingStatus.PENDING.value,
        customer_phone: Optional[str] = None,
        notify: bool = True,
    ) -> Booking:
        """
        Create a booking and bump the customer's counter in one transaction.

        The customer is resolved by (business, email) and created on first
        use. totalPrice is snapshotted from the service's current price.

        Raises:
            ValidationError: bad status, date, time or email
            NotFoundError: unknown business or service (or service of another business)
            ConflictError: the slot already holds a non-cancelled booking
        """
        initial_status = parse_status(status)
        booking_date = _parse_date(date)
        start_minute = _parse_time(time)
        email = normalize_email(customer_email or "")
        if not email:
            raise ValidationError("Customer email is required", details={"customerEmail": customer_email})

        booking = None
        for attempt in range(1, self.max_attempts + 1):
            business = await self.session.get(Business, business_id)
            if not business:
                raise NotFoundError("Business not found", details={"businessId": business_id})
            service = await get_service_by_id(self.session, business_id, service_id)
            if not service:
                raise NotFoundError("Service not found", details={"serviceId": service_id})

            occupies_slot = initial_status != BookingStatus.CANCELLED
            if occupies_slot:
                await self._ensure_slot_free(business_id, booking_date, start_minute)

            try:
                customer, _ = await get_or_create_customer(
                    self.session, business_id, email, customer_name, customer_phone
                )
                booking = Booking(
                    business_id=business_id,
                    customer_id=customer.id,
                    service_id=service.id,
                    date=booking_date,
                    start_minute=start_minute,
                    status=initial_status,
                    total_price=service.price,
                    notes=notes,
                )
                self.session.add(booking)
                await self.session.flush()
                await increment_total_bookings(self.session, customer)
                await self.session.commit()
            except IntegrityError as e:
                await self.session.rollback()
                booking = None
                if occupies_slot:
                    await self._ensure_slot_free(business_id, booking_date, start_minute, cause=e)
                # Lost a race creating the same customer; the retry finds them.
                logger.warning(
                    f"Integrity conflict creating booking for business {business_id} "
                    f"(attempt {attempt}/{self.max_attempts}): {e.orig}"
                )
                continue
            except SQLAlchemyError:
                await self.session.rollback()
                raise
            break

        if booking is None:
            raise ConflictError(
                "Could not create booking due to concurrent updates, please retry",
                details={"date": booking_date, "time": time},
            )

        logger.info(
            f"Booking {booking.id} created for business {business_id} on "
            f"{booking.date} at {booking.time} ({booking.status.value})"
        )

        if notify:
            self._fire_created(business, service, customer, booking)
        return booking

    async def _ensure_slot_free(
        self,
        business_id: str,
        booking_date: str,
        start_minute: int,
        exclude_id: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        existing = await find_active_booking_at(
            self.session, business_id, booking_date, start_minute, exclude_id=exclude_id
        )
        if existing:
            error = ConflictError(
                "This time slot is already booked",
                details={"date": booking_date, "time": existing.time},
            )
            if cause is not None:
                raise error from cause
            raise error

    # ── Update ──────────────────────────────────────────────────

    async def update_booking_status(
        self,
        booking_id: str,
        new_status: str,
        business_id: Optional[str] = None,
    ) -> Booking:
        return await self.update_booking(booking_id, business_id=business_id, status=new_status)

    async def update_booking(
        self,
        booking_id: str,
        business_id: Optional[str] = None,
        status: Optional[str] = None,
        notes: Optional[str] = None,
        total_price: Optional[int] = None,
        date: Optional[str] = None,
        time: Optional[str] = None,
    ) -> Booking:
        """
        Apply a partial update to a booking.

        - status is checked against the status graph
        - date/time reschedule the booking; only non-terminal bookings can
          move and the target slot must be free
        - total_price and notes are explicit overrides

        A change to confirmed or cancelled fires the matching owner push.
        """
        booking = await self._load_booking(booking_id, business_id)
        current = booking.status

        requested = parse_status(status) if status is not None else current
        status_changed = validate_transition(current, requested)
        if total_price is not None and total_price < 0:
            raise ValidationError("totalPrice must be >= 0", details={"totalPrice": total_price})

        new_date = _parse_date(date) if date is not None else booking.date
        new_minute = _parse_time(time) if time is not None else booking.start_minute
        moved = (new_date, new_minute) != (booking.date, booking.start_minute)

        if moved:
            if booking.is_terminal():
                raise InvalidTransitionError(
                    current.value,
                    requested.value,
                    message=f"Cannot reschedule a {current.value} booking",
                )
            if requested != BookingStatus.CANCELLED:
                await self._ensure_slot_free(
                    booking.business_id, new_date, new_minute, exclude_id=booking.id
                )
            booking.date = new_date
            booking.start_minute = new_minute

        if notes is not None:
            booking.notes = notes
        if total_price is not None:
            booking.total_price = total_price
        if status_changed:
            booking.status = requested

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(
                "This time slot is already booked",
                details={"date": new_date},
            ) from e

        if status_changed:
            logger.info(f"Booking {booking.id} status {current.value} -> {requested.value}")
        if moved:
            logger.info(f"Booking {booking.id} rescheduled to {booking.date} {booking.time}")

        if status_changed and requested in (BookingStatus.CONFIRMED, BookingStatus.CANCELLED):
            await self._fire_status_change(booking, requested)
        return booking

    async def _load_booking(self, booking_id: str, business_id: Optional[str]) -> Booking:
        if business_id:
            booking = await get_booking_by_id(self.session, business_id, booking_id)
        else:
            booking = await self.session.get(Booking, booking_id)
        if not booking:
            raise NotFoundError("Booking not found", details={"bookingId": booking_id})
        return booking

    # ── Slots ───────────────────────────────────────────────────

    async def get_available_slots(
        self,
        business_id: str,
        date: str,
        service_id: Optional[str] = None,
    ) -> SlotResult:
        """
        Slots for one date. The service only has to belong to the business;
        it does not change the slot list.
        """
        on_date = parse_iso_date(_parse_date(date))
        if not await self.session.get(Business, business_id):
            raise NotFoundError("Business not found", details={"businessId": business_id})
        if service_id and not await get_service_by_id(self.session, business_id, service_id):
            raise NotFoundError("Service not found", details={"serviceId": service_id})

        availability = await list_availability(self.session, business_id)
        bookings = await list_bookings_on_date(self.session, business_id, on_date.isoformat())
        return compute_slots(on_date, availability, bookings)

    # ── Side effects ────────────────────────────────────────────

    def _fire_created(self, business: Business, service: Service, customer: Customer, booking: Booking) -> None:
        if not self.dispatcher:
            return
        if self.mailer:
            self.dispatcher.fire(
                f"email:confirmation:{booking.id}",
                self.mailer.send_confirmation(
                    BookingConfirmation(
                        booking_id=booking.id,
                        customer_name=customer.name,
                        customer_email=customer.email,
                        service_name=service.name,
                        business_name=business.name,
                        date=booking.date,
                        start_minute=booking.start_minute,
                        time=booking.time,
                        duration_minutes=service.duration,
                        price=booking.total_price,
                        business_address=business.address,
                    )
                ),
            )
        if self.notifier and business.notifications_enabled:
            self.dispatcher.fire(
                f"push:new_booking:{booking.id}",
                self.notifier.booking_created(self._summary(booking, customer.name, service.name)),
            )

    async def _fire_status_change(self, booking: Booking, status: BookingStatus) -> None:
        if not (self.dispatcher and self.notifier):
            return
        names = await self._names_for(booking)
        if not names.business.notifications_enabled:
            return
        summary = self._summary(booking, names.customer_name, names.service_name)
        if status == BookingStatus.CONFIRMED:
            self.dispatcher.fire(f"push:confirmed:{booking.id}", self.notifier.booking_confirmed(summary))
        else:
            self.dispatcher.fire(f"push:cancelled:{booking.id}", self.notifier.booking_cancelled(summary))

    async def _names_for(self, booking: Booking) -> _BookingNames:
        business = await self.session.get(Business, booking.business_id)
        customer = await self.session.get(Customer, booking.customer_id)
        service = await self.session.get(Service, booking.service_id)
        return _BookingNames(
            business=business,
            customer_name=customer.name if customer else "Customer",
            service_name=service.name if service else "Service",
        )

    @staticmethod
    def _summary(booking: Booking, customer_name: str, service_name: str) -> BookingSummary:
        return BookingSummary(
            business_id=booking.business_id,
            customer_name=customer_name,
            service_name=service_name,
            date=booking.date,
            time=booking.time,
        )
