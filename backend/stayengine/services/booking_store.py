"""Persistence store contract and its PostgreSQL implementation.

The engine only reaches storage through ``BookingStore``. ``SqlBookingStore``
runs inside the request's ``AsyncSession`` transaction, so the conflict check
and the write that follows it commit as one unit.
"""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from stayengine.date_range import DateRange
from stayengine.errors import ConflictError, HomestayNotFound, PersistenceUnavailable
from stayengine.models.availability import AvailabilityRecord
from stayengine.models.booking import ACTIVE_STATUSES, Booking
from stayengine.models.homestay import Homestay
from stayengine.models.pricing_policy import HomestayPricingPolicy
from stayengine.schemas.pricing import PricingPolicy, default_pricing_policy

logger = logging.getLogger(__name__)

EXCLUSION_VIOLATION = "23P01"
NO_OVERLAP_CONSTRAINT = "ex_bookings_no_overlap"


class BookingStore(Protocol):
    """What the engine needs from durable storage."""

    async def get_homestay(self, homestay_id: uuid.UUID) -> Homestay | None: ...

    async def get_pricing_policy(self, homestay_id: uuid.UUID) -> PricingPolicy: ...

    async def get_booking(self, booking_id: uuid.UUID) -> Booking | None: ...

    async def lock_homestay(self, homestay_id: uuid.UUID) -> None:
        """Serialize check-then-write sequences on one homestay's calendar."""
        ...

    async def lock_booking(self, booking_id: uuid.UUID) -> Booking | None:
        """Re-read a booking from storage and hold it until the unit of work ends."""
        ...

    async def find_overlapping(
        self,
        homestay_id: uuid.UUID,
        date_range: DateRange,
        exclude_id: uuid.UUID | None = None,
    ) -> list[Booking]: ...

    async def find_availability_overrides(
        self, homestay_id: uuid.UUID, date_range: DateRange
    ) -> list[AvailabilityRecord]: ...

    async def save_booking(self, booking: Booking) -> Booking:
        """Persist ``booking``; raise ``ConflictError`` if that would double-book."""
        ...

    async def list_bookings(
        self,
        homestay_id: uuid.UUID | None = None,
        guest_id: uuid.UUID | None = None,
        status: str | None = None,
    ) -> list[Booking]: ...

    # Catalog writes used by the admin endpoints and seed script.

    async def save_homestay(self, homestay: Homestay) -> Homestay: ...

    async def save_pricing_policy(self, homestay_id: uuid.UUID, policy: PricingPolicy) -> PricingPolicy: ...

    async def save_availability(self, record: AvailabilityRecord) -> AvailabilityRecord:
        """Insert or replace the override for ``(record.homestay_id, record.date)``."""
        ...

    async def delete_availability(self, homestay_id: uuid.UUID, day: date) -> bool: ...


def _is_overlap_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) == EXCLUSION_VIOLATION or NO_OVERLAP_CONSTRAINT in str(orig)


class SqlBookingStore:
    """``BookingStore`` over an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except (OperationalError, InterfaceError) as exc:
            logger.error("Persistence store unavailable during %s: %s", operation, exc)
            raise PersistenceUnavailable(f"Persistence store unavailable during {operation}") from exc

    async def get_homestay(self, homestay_id: uuid.UUID) -> Homestay | None:
        with self._guard("get_homestay"):
            result = await self.db.execute(select(Homestay).where(Homestay.id == homestay_id))
            return result.scalar_one_or_none()

    async def get_pricing_policy(self, homestay_id: uuid.UUID) -> PricingPolicy:
        """Stored policy, or the house default priced at the homestay's base rate."""
        homestay = await self.get_homestay(homestay_id)
        if homestay is None:
            raise HomestayNotFound(f"Homestay {homestay_id} not found")
        row = await self._policy_row(homestay_id)
        if row is not None:
            return row.to_policy()
        return default_pricing_policy(homestay.base_price_per_night, homestay.currency)  # type: ignore[arg-type]

    async def _policy_row(self, homestay_id: uuid.UUID) -> HomestayPricingPolicy | None:
        with self._guard("get_pricing_policy"):
            result = await self.db.execute(
                select(HomestayPricingPolicy).where(HomestayPricingPolicy.homestay_id == homestay_id)
            )
            return result.scalar_one_or_none()

    async def get_booking(self, booking_id: uuid.UUID) -> Booking | None:
        with self._guard("get_booking"):
            result = await self.db.execute(select(Booking).where(Booking.id == booking_id))
            return result.scalar_one_or_none()

    async def lock_homestay(self, homestay_id: uuid.UUID) -> None:
        with self._guard("lock_homestay"):
            result = await self.db.execute(
                select(Homestay.id).where(Homestay.id == homestay_id).with_for_update()
            )
        if result.scalar_one_or_none() is None:
            raise HomestayNotFound(f"Homestay {homestay_id} not found")

    async def lock_booking(self, booking_id: uuid.UUID) -> Booking | None:
        query = (
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        with self._guard("lock_booking"):
            result = await self.db.execute(query)
            return result.scalar_one_or_none()

    async def find_overlapping(
        self,
        homestay_id: uuid.UUID,
        date_range: DateRange,
        exclude_id: uuid.UUID | None = None,
    ) -> list[Booking]:
        query = select(Booking).where(
            Booking.homestay_id == homestay_id,
            Booking.status.in_(ACTIVE_STATUSES),
            Booking.check_in < date_range.check_out,
            Booking.check_out > date_range.check_in,
        )
        if exclude_id is not None:
            query = query.where(Booking.id != exclude_id)

        with self._guard("find_overlapping"):
            result = await self.db.execute(query.order_by(Booking.check_in))
            return list(result.scalars().all())

    async def find_availability_overrides(
        self, homestay_id: uuid.UUID, date_range: DateRange
    ) -> list[AvailabilityRecord]:
        query = (
            select(AvailabilityRecord)
            .where(
                AvailabilityRecord.homestay_id == homestay_id,
                AvailabilityRecord.date >= date_range.check_in,
                AvailabilityRecord.date < date_range.check_out,
            )
            .order_by(AvailabilityRecord.date)
        )
        with self._guard("find_availability_overrides"):
            result = await self.db.execute(query)
            return list(result.scalars().all())

    async def save_booking(self, booking: Booking) -> Booking:
        """Flush the booking so constraint violations surface here, not at commit."""
        self.db.add(booking)
        try:
            with self._guard("save_booking"):
                await self.db.flush()
        except IntegrityError as exc:
            if _is_overlap_violation(exc):
                logger.warning(
                    "Write rejected: booking %s overlaps an active booking on homestay %s",
                    booking.id,
                    booking.homestay_id,
                )
                raise ConflictError("Dates conflict with an existing booking") from exc
            raise
        except StaleDataError as exc:
            logger.warning("Write rejected: booking %s was modified concurrently", booking.id)
            raise ConflictError("Booking was modified concurrently; re-read and retry") from exc

        with self._guard("save_booking"):
            await self.db.refresh(booking)
        return booking

    async def list_bookings(
        self,
        homestay_id: uuid.UUID | None = None,
        guest_id: uuid.UUID | None = None,
        status: str | None = None,
    ) -> list[Booking]:
        filters = []
        if homestay_id is not None:
            filters.append(Booking.homestay_id == homestay_id)
        if guest_id is not None:
            filters.append(Booking.guest_id == guest_id)
        if status is not None:
            filters.append(Booking.status == status)

        with self._guard("list_bookings"):
            result = await self.db.execute(select(Booking).where(*filters).order_by(Booking.check_in))
            return list(result.scalars().all())

    async def save_homestay(self, homestay: Homestay) -> Homestay:
        self.db.add(homestay)
        with self._guard("save_homestay"):
            await self.db.flush()
            await self.db.refresh(homestay)
        return homestay

    async def save_pricing_policy(self, homestay_id: uuid.UUID, policy: PricingPolicy) -> PricingPolicy:
        homestay = await self.get_homestay(homestay_id)
        if homestay is None:
            raise HomestayNotFound(f"Homestay {homestay_id} not found")

        row = await self._policy_row(homestay_id)
        if row is None:
            row = HomestayPricingPolicy(homestay_id=homestay_id)
            self.db.add(row)
        row.apply(policy)
        with self._guard("save_pricing_policy"):
            await self.db.flush()
        return row.to_policy()

    async def save_availability(self, record: AvailabilityRecord) -> AvailabilityRecord:
        with self._guard("save_availability"):
            result = await self.db.execute(
                select(AvailabilityRecord).where(
                    AvailabilityRecord.homestay_id == record.homestay_id,
                    AvailabilityRecord.date == record.date,
                )
            )
            existing = result.scalar_one_or_none()
            if existing is not None:
                existing.is_available = record.is_available
                existing.capacity_override = record.capacity_override
                existing.price_override = record.price_override
                existing.minimum_stay = record.minimum_stay
                existing.note = record.note
                record = existing
            else:
                self.db.add(record)
            await self.db.flush()
        return record

    async def delete_availability(self, homestay_id: uuid.UUID, day: date) -> bool:
        with self._guard("delete_availability"):
            result = await self.db.execute(
                delete(AvailabilityRecord).where(
                    AvailabilityRecord.homestay_id == homestay_id,
                    AvailabilityRecord.date == day,
                )
            )
        return result.rowcount > 0
