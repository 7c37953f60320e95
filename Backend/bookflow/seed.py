import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .booking_lifecycle import BookingManager
from .core.config import get_settings
from .customers import get_or_create_customer
from .models import Availability, Business, Service
from .onboarding import get_business_by_slug
from .tenancy.queries import get_availability_for_day, list_services


logger = logging.getLogger(__name__)

DEFAULT_BUSINESS_TYPE = "salon"
DEMO_BUSINESS_SLUG = "demo"
WEEKDAYS = range(1, 6)  # Monday..Friday

DEMO_TEMPLATES = {
    "salon": {
        "name": "Signature Salon",
        "services": [
            {"name": "Haircut", "duration": 30, "price": 4500, "description": "Professional haircut"},
            {"name": "Hair Coloring", "duration": 120, "price": 8500, "description": "Full head color treatment"},
            {"name": "Beard Trim", "duration": 15, "price": 2000, "description": "Beard grooming and shaping"},
            {"name": "Styling", "duration": 45, "price": 5500, "description": "Hair styling for special occasions"},
        ],
        "customers": [
            {"name": "John Smith", "email": "john-customer@example.com", "phone": "555-0101"},
            {"name": "Sarah Johnson", "email": "sarah-customer@example.com", "phone": "555-0102"},
            {"name": "Michael Brown", "email": "michael-customer@example.com", "phone": "555-0103"},
            {"name": "Emma Davis", "email": "emma-customer@example.com", "phone": "555-0104"},
        ],
    },
    "autodetailing": {
        "name": "Premium Auto Detail",
        "services": [
            {"name": "Basic Wash & Wax", "duration": 60, "price": 7500, "description": "Complete exterior wash and wax"},
            {"name": "Interior Detailing", "duration": 90, "price": 12500, "description": "Deep interior cleaning"},
            {"name": "Full Detail Package", "duration": 180, "price": 25000, "description": "Complete interior and exterior detail"},
            {"name": "Ceramic Coating", "duration": 120, "price": 35000, "description": "Professional ceramic coating application"},
        ],
        "customers": [
            {"name": "Robert Martinez", "email": "robert-car@example.com", "phone": "555-0201"},
            {"name": "Lisa Anderson", "email": "lisa-car@example.com", "phone": "555-0202"},
            {"name": "David Wilson", "email": "david-car@example.com", "phone": "555-0203"},
            {"name": "Jessica Taylor", "email": "jessica-car@example.com", "phone": "555-0204"},
        ],
    },
    "solar": {
        "name": "SunPower Solutions",
        "services": [
            {"name": "Solar Panel Inspection", "duration": 60, "price": 15000, "description": "Complete system evaluation"},
            {"name": "Installation Consultation", "duration": 45, "price": 0, "description": "Free consultation for new installations"},
            {"name": "System Maintenance", "duration": 120, "price": 8500, "description": "Annual maintenance and cleaning"},
            {"name": "Battery Backup Setup", "duration": 180, "price": 45000, "description": "Battery storage system installation"},
        ],
        "customers": [
            {"name": "James Thompson", "email": "james-solar@example.com", "phone": "555-0301"},
            {"name": "Patricia Garcia", "email": "patricia-solar@example.com", "phone": "555-0302"},
            {"name": "Christopher Lee", "email": "chris-solar@example.com", "phone": "555-0303"},
            {"name": "Nancy White", "email": "nancy-solar@example.com", "phone": "555-0304"},
        ],
    },
    "coaching": {
        "name": "Elite Coaching Academy",
        "services": [
            {"name": "Personal Training Session", "duration": 60, "price": 10000, "description": "One-on-one coaching session"},
            {"name": "Group Coaching Class", "duration": 90, "price": 6000, "description": "Small group coaching session"},
            {"name": "Monthly Membership", "duration": 2880, "price": 35000, "description": "Unlimited group classes"},
            {"name": "Executive Coaching Package", "duration": 300, "price": 50000, "description": "12-week intensive program"},
        ],
        "customers": [
            {"name": "Mark Johnson", "email": "mark-coach@example.com", "phone": "555-0401"},
            {"name": "Karen Robinson", "email": "karen-coach@example.com", "phone": "555-0402"},
            {"name": "Steven Clark", "email": "steven-coach@example.com", "phone": "555-0403"},
            {"name": "Dorothy Rodriguez", "email": "dorothy-coach@example.com", "phone": "555-0404"},
        ],
    },
    "fitness": {
        "name": "FitZone Gym",
        "services": [
            {"name": "Personal Training Session", "duration": 60, "price": 8000, "description": "One-on-one fitness training"},
            {"name": "Group Fitness Class", "duration": 45, "price": 2500, "description": "Led fitness class"},
            {"name": "Monthly Membership", "duration": 2880, "price": 9999, "description": "Unlimited gym access"},
            {"name": "Nutrition Consultation", "duration": 45, "price": 5000, "description": "Personalized nutrition planning"},
        ],
        "customers": [
            {"name": "Andrew Jackson", "email": "andrew-fit@example.com", "phone": "555-0501"},
            {"name": "Susan Miller", "email": "susan-fit@example.com", "phone": "555-0502"},
            {"name": "Thomas Moore", "email": "thomas-fit@example.com", "phone": "555-0503"},
            {"name": "Betty Taylor", "email": "betty-fit@example.com", "phone": "555-0504"},
        ],
    },
}

# (customer index, service index, days from today, time, status)
DEMO_BOOKINGS = [
    (0, 0, 1, "10:00 AM", "confirmed"),
    (1, 1, 2, "2:00 PM", "pending"),
    (2, 0, 3, "11:00 AM", "confirmed"),
]


async def seed_demo_data(
    session: AsyncSession,
    business_id: str,
    business_type: str = DEFAULT_BUSINESS_TYPE,
    today: Optional[date] = None,
) -> bool:
    """
    Fill a business with a demo template.

    Does nothing (returns False) if the business already has services, so it
    is safe to call repeatedly. Unknown business types use the salon
    template.
    """
    if business_type not in DEMO_TEMPLATES:
        logger.warning(f"Unknown business type '{business_type}'; using '{DEFAULT_BUSINESS_TYPE}' template")
        business_type = DEFAULT_BUSINESS_TYPE
    if await list_services(session, business_id):
        logger.info(f"Business {business_id} already has services; skipping demo data")
        return False

    settings = get_settings()
    template = DEMO_TEMPLATES[business_type]
    today = today or date.today()

    services = [
        Service(business_id=business_id, is_active=True, **service)
        for service in template["services"]
    ]
    session.add_all(services)

    customers = []
    for entry in template["customers"]:
        customer, _ = await get_or_create_customer(
            session, business_id, entry["email"], entry["name"], entry["phone"]
        )
        customers.append(customer)

    for day in WEEKDAYS:
        row = await get_availability_for_day(session, business_id, day)
        if row is None:
            session.add(
                Availability(
                    business_id=business_id,
                    day_of_week=day,
                    start_time=settings.default_open_time,
                    end_time=settings.default_close_time,
                    is_active=True,
                )
            )
    await session.commit()

    # Bookings go through the manager so customer counters stay in sync.
    manager = BookingManager(session)
    for customer_idx, service_idx, days_ahead, time, status in DEMO_BOOKINGS:
        customer = customers[customer_idx]
        await manager.create_booking(
            business_id=business_id,
            customer_name=customer.name,
            customer_email=customer.email,
            service_id=services[service_idx].id,
            date=(today + timedelta(days=days_ahead)).isoformat(),
            time=time,
            status=status,
            notify=False,
        )

    logger.info(f"Seeded '{business_type}' demo data for business {business_id}")
    return True


async def seed_demo_business(session: AsyncSession) -> Business:
    """Create the demo tenant on first startup and fill it with the salon template."""
    business = await get_business_by_slug(session, DEMO_BUSINESS_SLUG)
    if not business:
        business = Business(name=DEMO_TEMPLATES[DEFAULT_BUSINESS_TYPE]["name"], slug=DEMO_BUSINESS_SLUG)
        session.add(business)
        await session.commit()
        logger.info(f"Created demo business {business.id}")
    await seed_demo_data(session, business.id)
    return business
