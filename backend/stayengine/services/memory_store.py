"""In-process ``BookingStore`` used by tests and local tooling.

Bookings are held as column snapshots, not live objects, so a rejected
``save_booking`` leaves the stored state untouched just as a rolled-back
transaction would. The no-overlap and version checks mirror the database's
exclusion constraint and ``version_id_col``.
"""

import copy
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from stayengine.config import settings
from stayengine.date_range import DateRange, intervals_overlap
from stayengine.errors import ConflictError, HomestayNotFound
from stayengine.models.availability import AvailabilityRecord
from stayengine.models.booking import ACTIVE_STATUSES, Booking
from stayengine.models.homestay import Homestay
from stayengine.schemas.pricing import PricingPolicy, default_pricing_policy

logger = logging.getLogger(__name__)

_BOOKING_COLUMNS = tuple(column.key for column in Booking.__table__.columns if column.key != "stay_period")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class InMemoryBookingStore:
    """Dictionary-backed store with the same conflict semantics as PostgreSQL."""

    def __init__(self) -> None:
        self.homestays: dict[uuid.UUID, Homestay] = {}
        self.policies: dict[uuid.UUID, PricingPolicy] = {}
        self.availability: dict[tuple[uuid.UUID, date], AvailabilityRecord] = {}
        self._bookings: dict[uuid.UUID, dict] = {}

    # -- fixtures helpers ---------------------------------------------------

    def add_homestay(
        self,
        name: str = "Test Homestay",
        base_price: Decimal = Decimal("2500.00"),
        currency: str = "INR",
        max_guests: int | None = 4,
        policy: PricingPolicy | None = None,
    ) -> Homestay:
        homestay = Homestay(
            id=uuid.uuid4(),
            name=name,
            base_price_per_night=base_price,
            currency=currency,
            max_guests=max_guests,
            status="active",
            created_at=_utcnow(),
            updated_at=_utcnow(),
        )
        self.homestays[homestay.id] = homestay
        if policy is not None:
            self.policies[homestay.id] = policy
        return homestay

    def set_availability(self, homestay_id: uuid.UUID, day: date, **fields) -> AvailabilityRecord:
        record = AvailabilityRecord(id=uuid.uuid4(), homestay_id=homestay_id, date=day, **fields)
        if record.is_available is None:
            record.is_available = True
        self.availability[(homestay_id, day)] = record
        return record

    @property
    def bookings(self) -> list[Booking]:
        return [self._restore(data) for data in self._bookings.values()]

    # -- BookingStore -------------------------------------------------------

    async def get_homestay(self, homestay_id: uuid.UUID) -> Homestay | None:
        return self.homestays.get(homestay_id)

    async def get_pricing_policy(self, homestay_id: uuid.UUID) -> PricingPolicy:
        homestay = self.homestays.get(homestay_id)
        if homestay is None:
            raise HomestayNotFound(f"Homestay {homestay_id} not found")
        if homestay_id in self.policies:
            return self.policies[homestay_id]
        return default_pricing_policy(homestay.base_price_per_night, homestay.currency)  # type: ignore[arg-type]

    async def get_booking(self, booking_id: uuid.UUID) -> Booking | None:
        data = self._bookings.get(booking_id)
        return self._restore(data) if data is not None else None

    async def lock_homestay(self, homestay_id: uuid.UUID) -> None:
        if homestay_id not in self.homestays:
            raise HomestayNotFound(f"Homestay {homestay_id} not found")

    async def lock_booking(self, booking_id: uuid.UUID) -> Booking | None:
        return await self.get_booking(booking_id)

    async def find_overlapping(
        self,
        homestay_id: uuid.UUID,
        date_range: DateRange,
        exclude_id: uuid.UUID | None = None,
    ) -> list[Booking]:
        matches = [
            data
            for data in self._bookings.values()
            if data["homestay_id"] == homestay_id
            and data["id"] != exclude_id
            and data["status"] in ACTIVE_STATUSES
            and intervals_overlap(data["check_in"], data["check_out"], date_range.check_in, date_range.check_out)
        ]
        return [self._restore(data) for data in sorted(matches, key=lambda d: d["check_in"])]

    async def find_availability_overrides(
        self, homestay_id: uuid.UUID, date_range: DateRange
    ) -> list[AvailabilityRecord]:
        return [
            record
            for (record_homestay, day), record in sorted(self.availability.items(), key=lambda item: item[0][1])
            if record_homestay == homestay_id and date_range.contains(day)
        ]

    async def save_booking(self, booking: Booking) -> Booking:
        if booking.id is None:
            booking.id = uuid.uuid4()
        stored = self._bookings.get(booking.id)
        if stored is not None and stored["version"] != booking.version:
            raise ConflictError("Booking was modified concurrently; re-read and retry")

        if booking.status in ACTIVE_STATUSES:
            for other in self._bookings.values():
                if (
                    other["id"] != booking.id
                    and other["homestay_id"] == booking.homestay_id
                    and other["status"] in ACTIVE_STATUSES
                    and intervals_overlap(other["check_in"], other["check_out"], booking.check_in, booking.check_out)
                ):
                    logger.warning(
                        "Write rejected: booking %s overlaps booking %s on homestay %s",
                        booking.id,
                        other["id"],
                        booking.homestay_id,
                    )
                    raise ConflictError(
                        "Dates conflict with an existing booking",
                        conflicting_booking_ids=[other["id"]],
                    )

        now = _utcnow()
        booking.version = (booking.version or 0) + 1
        booking.updated_at = now
        if booking.created_at is None:
            booking.created_at = now
        self._bookings[booking.id] = {key: copy.deepcopy(getattr(booking, key)) for key in _BOOKING_COLUMNS}
        return booking

    async def list_bookings(
        self,
        homestay_id: uuid.UUID | None = None,
        guest_id: uuid.UUID | None = None,
        status: str | None = None,
    ) -> list[Booking]:
        matches = [
            data
            for data in self._bookings.values()
            if (homestay_id is None or data["homestay_id"] == homestay_id)
            and (guest_id is None or data["guest_id"] == guest_id)
            and (status is None or data["status"] == status)
        ]
        return [self._restore(data) for data in sorted(matches, key=lambda d: d["check_in"])]

    async def save_homestay(self, homestay: Homestay) -> Homestay:
        now = _utcnow()
        if homestay.id is None:
            homestay.id = uuid.uuid4()
        if homestay.currency is None:
            homestay.currency = settings.default_currency
        if homestay.status is None:
            homestay.status = "active"
        if homestay.created_at is None:
            homestay.created_at = now
        homestay.updated_at = now
        self.homestays[homestay.id] = homestay
        return homestay

    async def save_pricing_policy(self, homestay_id: uuid.UUID, policy: PricingPolicy) -> PricingPolicy:
        if homestay_id not in self.homestays:
            raise HomestayNotFound(f"Homestay {homestay_id} not found")
        self.policies[homestay_id] = policy
        return policy

    async def save_availability(self, record: AvailabilityRecord) -> AvailabilityRecord:
        if record.id is None:
            record.id = uuid.uuid4()
        if record.is_available is None:
            record.is_available = True
        self.availability[(record.homestay_id, record.date)] = record
        return record

    async def delete_availability(self, homestay_id: uuid.UUID, day: date) -> bool:
        return self.availability.pop((homestay_id, day), None) is not None

    @staticmethod
    def _restore(data: dict) -> Booking:
        return Booking(**copy.deepcopy(data))
