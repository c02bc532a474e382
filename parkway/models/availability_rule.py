from __future__ import annotations

import uuid
import datetime as dt
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parkway.db.base import Base
from parkway.models._mixins import TimestampMixin

RECURRING = "RECURRING"
DATE_OVERRIDE = "DATE_OVERRIDE"

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class AvailabilityRule(Base, TimestampMixin):
    """Bookable hours of a space.

    Stored as single-table inheritance: `kind` selects RecurringRule or
    DateOverrideRule. Times are zero-padded "HH:MM" strings in the canonical
    timezone.
    """

    __tablename__ = "availability_rules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    space_id: Mapped[str] = mapped_column(String(36), ForeignKey("driveways.id"), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)

    space: Mapped["Space"] = relationship("Space", back_populates="availability_rules")

    __mapper_args__ = {"polymorphic_on": "kind"}


class RecurringRule(AvailabilityRule):
    day_of_week: Mapped[str | None] = mapped_column(String(16), nullable=True)  # monday..sunday
    enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=True)

    __mapper_args__ = {"polymorphic_identity": RECURRING}


class DateOverrideRule(AvailabilityRule):
    date: Mapped[dt.date | None] = mapped_column(Date, nullable=True, index=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    __mapper_args__ = {"polymorphic_identity": DATE_OVERRIDE}
