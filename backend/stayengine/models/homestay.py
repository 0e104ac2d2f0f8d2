"""Homestay model: the bookable resource whose calendar the engine guards."""

from decimal import Decimal

from sqlalchemy import Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stayengine.config import settings
from stayengine.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Homestay(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A bookable homestay unit."""

    __tablename__ = "homestays"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    location: Mapped[str | None] = mapped_column(String(255), default=None)
    max_guests: Mapped[int | None] = mapped_column(default=None)
    base_price_per_night: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default=settings.default_currency)
    status: Mapped[str] = mapped_column(String(50), default="active")  # active, maintenance, inactive

    # Relationships
    pricing_policy: Mapped["HomestayPricingPolicy"] = relationship(  # type: ignore[name-defined]  # noqa: F821
        back_populates="homestay", lazy="selectin", uselist=False, cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Homestay(id={self.id}, name={self.name!r}, status={self.status!r})>"
