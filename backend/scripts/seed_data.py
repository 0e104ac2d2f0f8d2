"""Seed the database with sample homestays, pricing policies and bookings.

Bookings are created through the lifecycle manager, so they carry real
pricing snapshots and respect the no-overlap constraint.

Run from ``backend/``:
    python -m scripts.seed_data
"""

import asyncio
import sys
import uuid
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete

from stayengine.billing.payment_authority import StripePaymentAuthority
from stayengine.clock import resource_today
from stayengine.database import async_session_factory
from stayengine.date_range import DateRange
from stayengine.models.availability import AvailabilityRecord
from stayengine.models.homestay import Homestay
from stayengine.schemas.pricing import LengthOfStayDiscounts, PricingPolicy, SeasonalMultipliers
from stayengine.services.booking_service import cancel_booking, create_booking
from stayengine.services.booking_store import SqlBookingStore

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

HOMESTAYS = [
    {
        "name": "Misty Hills Cottage",
        "description": "Two-bedroom cottage above the tea gardens with a wood-fired stove and valley views.",
        "location": "Munnar, Kerala",
        "max_guests": 4,
        "base_price_per_night": Decimal("3200.00"),
        "currency": "INR",
    },
    {
        "name": "Backwater Stilt House",
        "description": "Traditional wooden house on the Alleppey backwaters, breakfast included.",
        "location": "Alleppey, Kerala",
        "max_guests": 3,
        "base_price_per_night": Decimal("4500.00"),
        "currency": "INR",
    },
    {
        "name": "Old Quarter Courtyard Room",
        "description": "Heritage room around a Portuguese-era courtyard, walking distance to the beach.",
        "location": "Fontainhas, Goa",
        "max_guests": 2,
        "base_price_per_night": Decimal("2500.00"),
        "currency": "INR",
    },
]

# Custom policies by homestay name; others use the default policy.
POLICIES = {
    "Backwater Stilt House": {
        "seasonal_multipliers": SeasonalMultipliers(peak=Decimal("1.6"), off_peak=Decimal("0.75")),
        "length_of_stay_discounts": LengthOfStayDiscounts(weekly=Decimal("0.12"), monthly=Decimal("0.25")),
    },
}

# (homestay, days from today to check-in, nights, guests)
BOOKINGS = [
    ("Misty Hills Cottage", 10, 3, 2),
    ("Misty Hills Cottage", 20, 8, 4),
    ("Backwater Stilt House", 5, 2, 2),
    ("Backwater Stilt House", 40, 4, 3),
    ("Old Quarter Courtyard Room", 15, 5, 2),
]


async def seed() -> None:
    """Populate the database with sample data.

    Idempotent: homestays with the seed names are deleted first (bookings,
    policies and overrides cascade with them).
    """
    async with async_session_factory() as session:
        names = [data["name"] for data in HOMESTAYS]
        await session.execute(delete(Homestay).where(Homestay.name.in_(names)))
        await session.flush()

        store = SqlBookingStore(session)
        today = resource_today()

        # ------------------------------------------------------------------
        # 1. Homestays and pricing policies
        # ------------------------------------------------------------------
        homestays: dict[str, Homestay] = {}
        for data in HOMESTAYS:
            homestay = await store.save_homestay(Homestay(**data))
            homestays[homestay.name] = homestay
            if homestay.name in POLICIES:
                policy = PricingPolicy(
                    base_price=homestay.base_price_per_night,
                    currency=homestay.currency,
                    **POLICIES[homestay.name],
                )
                await store.save_pricing_policy(homestay.id, policy)
            print(f"   {homestay.name} ({homestay.location}) {homestay.base_price_per_night} {homestay.currency}/night")

        # ------------------------------------------------------------------
        # 2. Calendar overrides
        # ------------------------------------------------------------------
        cottage = homestays["Misty Hills Cottage"]
        await store.save_availability(
            AvailabilityRecord(
                homestay_id=cottage.id,
                date=today + timedelta(days=60),
                is_available=False,
                note="Owner maintenance",
            )
        )
        await store.save_availability(
            AvailabilityRecord(
                homestay_id=cottage.id,
                date=today + timedelta(days=45),
                is_available=True,
                price_override=Decimal("5000.00"),
                minimum_stay=2,
                note="Local festival",
            )
        )

        # ------------------------------------------------------------------
        # 3. Bookings
        # ------------------------------------------------------------------
        created = []
        for name, offset, nights, guests in BOOKINGS:
            check_in = today + timedelta(days=offset)
            booking = await create_booking(
                store,
                homestays[name].id,
                uuid.uuid4(),
                DateRange(check_in, check_in + timedelta(days=nights)),
                guests,
            )
            created.append(booking)

        # One pending booking cancelled by the guest; nothing was paid, so no refund.
        await cancel_booking(store, StripePaymentAuthority(), created[-1].id, reason="Change of plans")

        await session.commit()

        print()
        print("=" * 60)
        print("Seed Summary")
        print("=" * 60)
        print(f"   Homestays: {len(homestays)}")
        print(f"   Policies:  {len(POLICIES)} custom")
        print(f"   Bookings:  {len(created)} (1 cancelled)")
        for booking in created:
            print(f"     {booking.check_in} -> {booking.check_out}  {booking.total_price} {booking.currency}")
        print("=" * 60)


if __name__ == "__main__":
    asyncio.run(seed())
