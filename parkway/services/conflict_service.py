from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from parkway.models.reservation import BLOCKING_STATUSES, Reservation
from parkway.models.space import Space


def windows_overlap(s1: datetime, e1: datetime, s2: datetime, e2: datetime) -> bool:
    """Half-open overlap: a window ending at 14:00 does not touch one starting at 14:00."""
    return s1 < e2 and s2 < e1


def has_conflict(
    db: Session,
    *,
    space_id: str,
    start_at: datetime,
    end_at: datetime,
    exclude_reservation_id: str | None = None,
) -> bool:
    q = (
        select(Reservation.id)
        .where(Reservation.space_id == space_id)
        .where(Reservation.status.in_(BLOCKING_STATUSES))
        .where(Reservation.start_at < end_at)
        .where(Reservation.end_at > start_at)
    )
    if exclude_reservation_id:
        q = q.where(Reservation.id != exclude_reservation_id)
    q = q.limit(1)
    return db.execute(q).first() is not None


def lock_space(db: Session, space_id: str) -> Space | None:
    """Load the space row with a write lock held until the transaction ends.

    Every booking attempt on the same space queues here, so the conflict check
    and the insert that follows it run one caller at a time.
    """
    q = select(Space).where(Space.id == space_id).with_for_update()
    return db.execute(q).scalar_one_or_none()
