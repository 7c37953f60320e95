from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Customer


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_customer_by_email(
    session: AsyncSession, business_id: str, email: str
) -> Customer | None:
    normalized = normalize_email(email)
    result = await session.execute(
        select(Customer).where(
            Customer.business_id == business_id,
            Customer.email == normalized,
        )
    )
    return result.scalar_one_or_none()


async def get_or_create_customer(
    session: AsyncSession,
    business_id: str,
    email: str,
    name: str | None,
    phone: str | None = None,
) -> tuple[Customer, bool]:
    """
    Resolve a customer by (business, email), creating one if missing.

    Returns (customer, created). An existing customer keeps their stored
    name; a missing phone is filled in from the new request. The caller owns
    the transaction: the insert is only flushed, and a concurrent create of
    the same email surfaces as IntegrityError from the unique key.
    """
    normalized = normalize_email(email)
    customer = await get_customer_by_email(session, business_id, normalized)
    if customer:
        if phone and not customer.phone:
            customer.phone = phone.strip()
        return customer, False

    customer = Customer(
        business_id=business_id,
        email=normalized,
        name=name.strip() if name else normalized,
        phone=phone.strip() if phone else None,
        total_bookings=0,
    )
    session.add(customer)
    await session.flush()
    return customer, True


async def increment_total_bookings(session: AsyncSession, customer: Customer) -> None:
    """Bump the booking counter in SQL so concurrent bookings cannot lose an update."""
    await session.execute(
        update(Customer)
        .where(Customer.id == customer.id)
        .values(total_bookings=Customer.total_bookings + 1)
        .execution_options(synchronize_session=False)
    )
    await session.refresh(customer, attribute_names=["total_bookings"])
