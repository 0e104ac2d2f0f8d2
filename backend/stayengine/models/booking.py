"""Booking model: tracks homestay reservations and their frozen pricing."""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, CheckConstraint, Computed, Date, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import DATERANGE, ExcludeConstraint, Range
from sqlalchemy.orm import Mapped, mapped_column

from stayengine.database import Base, TimestampMixin, UUIDPrimaryKeyMixin
from stayengine.date_range import DateRange
from stayengine.schemas.pricing import PricingBreakdown


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses that hold dates on the calendar.
ACTIVE_STATUSES: frozenset[str] = frozenset(
    {BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value, BookingStatus.CHECKED_IN.value}
)


class Booking(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A reservation of a homestay for a half-open date range.

    ``pricing`` holds the ``PricingBreakdown`` computed at creation (or the
    last reschedule) and does not change when the homestay's policy is edited.
    """

    __tablename__ = "bookings"

    homestay_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("homestays.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    guest_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    stay_period: Mapped[Range[date] | None] = mapped_column(
        DATERANGE,
        Computed("daterange(check_in, check_out, '[)')", persisted=True),
    )
    guest_count: Mapped[int] = mapped_column(Integer, default=1)
    status: Mapped[str] = mapped_column(
        String(50),
        default=BookingStatus.PENDING.value,
        index=True,
    )  # pending, confirmed, checked_in, completed, cancelled
    pricing: Mapped[dict] = mapped_column(JSON, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    refund_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_bookings_check_in", "check_in"),
        CheckConstraint("check_out > check_in", name="ck_bookings_dates"),
        # Database-level guard against double booking: no two active bookings
        # of one homestay may share a night.
        ExcludeConstraint(
            ("homestay_id", "="),
            ("stay_period", "&&"),
            name="ex_bookings_no_overlap",
            using="gist",
            where=text("status IN ('pending', 'confirmed', 'checked_in')"),
        ),
    )

    @property
    def date_range(self) -> DateRange:
        return DateRange(self.check_in, self.check_out)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def pricing_breakdown(self) -> PricingBreakdown:
        return PricingBreakdown.model_validate(self.pricing)

    def set_pricing(self, breakdown: PricingBreakdown) -> None:
        """Replace the pricing snapshot wholesale."""
        self.pricing = breakdown.model_dump(mode="json")
        self.total_price = breakdown.total
        self.currency = breakdown.currency

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, homestay_id={self.homestay_id}, guest_id={self.guest_id}, status={self.status})>"
        )
