from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import Boolean, Float, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parkway.db.base import Base
from parkway.models._mixins import TimestampMixin


class Space(Base, TimestampMixin):
    """A driveway that can be reserved by the hour."""

    __tablename__ = "driveways"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    address: Mapped[str] = mapped_column(String(500), nullable=False)

    # Cached geocode of `address`; NULL until resolved
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)  # soft delete
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)  # owner toggle

    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))

    availability_rules: Mapped[list["AvailabilityRule"]] = relationship(
        "AvailabilityRule",
        back_populates="space",
        cascade="all, delete-orphan",
        order_by="AvailabilityRule.position",
        lazy="selectin",
    )

    @property
    def coordinates(self) -> tuple[float, float] | None:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)
