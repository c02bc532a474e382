from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parkway.db.base import Base
from parkway.db.types import UTCDateTime
from parkway.models._mixins import TimestampMixin

PENDING = "pending"
CONFIRMED = "confirmed"
REJECTED = "rejected"
CANCELLED = "cancelled"
COMPLETED = "completed"

# Statuses that hold the space; only these participate in conflict checks
BLOCKING_STATUSES = (PENDING, CONFIRMED)

UNPAID = "unpaid"
PAID = "paid"
FAILED = "failed"
REFUNDED = "refunded"


class Reservation(Base, TimestampMixin):
    __tablename__ = "reservations"
    __table_args__ = (
        Index("ix_reservations_conflict", "space_id", "status", "start_at", "end_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    space_id: Mapped[str] = mapped_column(String(36), ForeignKey("driveways.id"), nullable=False)
    requester_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    start_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=PENDING)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default=UNPAID)

    # Rate captured from the matching availability rule at creation time
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    confirmed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    cancel_reason: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    space: Mapped["Space"] = relationship("Space")
