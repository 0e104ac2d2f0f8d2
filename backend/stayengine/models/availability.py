"""Availability model: per-date calendar overrides for a homestay."""

import uuid
import datetime
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stayengine.database import Base, UUIDPrimaryKeyMixin


class AvailabilityRecord(UUIDPrimaryKeyMixin, Base):
    """Override for a single homestay date.

    No row for a date means the date is open at the policy price.
    """

    __tablename__ = "availability"

    homestay_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("homestays.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    is_available: Mapped[bool] = mapped_column(default=True)
    capacity_override: Mapped[int | None] = mapped_column(default=None)  # max guests that night, 0 closes it
    price_override: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), default=None)
    minimum_stay: Mapped[int | None] = mapped_column(default=None)  # nights, when checking in on this date
    note: Mapped[str | None] = mapped_column(Text, default=None)

    __table_args__ = (UniqueConstraint("homestay_id", "date", name="uq_availability_homestay_date"),)

    def blocks(self, guest_count: int = 1) -> bool:
        """True when this override closes the date for ``guest_count`` guests."""
        if not self.is_available:
            return True
        return self.capacity_override is not None and guest_count > self.capacity_override

    def __repr__(self) -> str:
        return f"<AvailabilityRecord(homestay_id={self.homestay_id}, date={self.date}, available={self.is_available})>"
