from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from parkway.db.base import Base
from parkway.db.types import UTCDateTime
from parkway.models._mixins import utcnow


class ReservationEventRecord(Base):
    """Outbox row for a reservation status change.

    Written in the same transaction as the transition; the notification
    service reads unpublished rows and stamps `published_at`.
    """

    __tablename__ = "reservation_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    reservation_id: Mapped[str] = mapped_column(String(36), ForeignKey("reservations.id"), nullable=False, index=True)

    from_status: Mapped[str | None] = mapped_column(String(16), nullable=True)  # NULL on create
    to_status: Mapped[str] = mapped_column(String(16), nullable=False)
    actor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)  # NULL = system

    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    published_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, index=True)
