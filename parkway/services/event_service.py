from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

import structlog
from sqlalchemy.orm import Session

from parkway.models._mixins import utcnow
from parkway.models.reservation_event import ReservationEventRecord

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReservationEvent:
    reservation_id: str
    from_status: str | None
    to_status: str
    actor_id: str | None = None
    occurred_at: datetime = field(default_factory=utcnow)


class EventPublisher(Protocol):
    def publish(self, db: Session, event: ReservationEvent) -> None:
        """Hand a status change to the notification side.

        Called inside the transaction that made the change; the caller commits.
        """
        ...


class OutboxEventPublisher:
    """Stores events in `reservation_events` for the notification service to drain."""

    def publish(self, db: Session, event: ReservationEvent) -> None:
        db.add(
            ReservationEventRecord(
                reservation_id=event.reservation_id,
                from_status=event.from_status,
                to_status=event.to_status,
                actor_id=event.actor_id,
                occurred_at=event.occurred_at,
            )
        )
        logger.info(
            "reservation_event_queued",
            reservation_id=event.reservation_id,
            from_status=event.from_status,
            to_status=event.to_status,
        )
