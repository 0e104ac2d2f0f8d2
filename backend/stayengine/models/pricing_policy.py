"""Pricing policy model: one stored policy per homestay."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, ForeignKey, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stayengine.database import Base, UUIDPrimaryKeyMixin
from stayengine.schemas.pricing import PricingPolicy


class HomestayPricingPolicy(UUIDPrimaryKeyMixin, Base):
    """Persisted form of a ``PricingPolicy``.

    Base price and currency are columns; the multiplier and discount tables
    live in ``rules`` as JSON so they can evolve without migrations.
    """

    __tablename__ = "pricing_policies"

    homestay_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("homestays.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    rules: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())

    homestay: Mapped["Homestay"] = relationship(back_populates="pricing_policy")  # type: ignore[name-defined]  # noqa: F821

    def to_policy(self) -> PricingPolicy:
        return PricingPolicy.model_validate(
            {**self.rules, "base_price": self.base_price, "currency": self.currency}
        )

    def apply(self, policy: PricingPolicy) -> None:
        """Overwrite this row with ``policy``."""
        data = policy.model_dump(mode="json", exclude={"base_price", "currency"})
        self.base_price = policy.base_price
        self.currency = policy.currency
        self.rules = data

    def __repr__(self) -> str:
        return f"<HomestayPricingPolicy(homestay_id={self.homestay_id}, base_price={self.base_price})>"
