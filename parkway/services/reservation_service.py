from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from parkway.core.config import get_settings
from parkway.models.reservation import (
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    FAILED,
    PAID,
    PENDING,
    REFUNDED,
    REJECTED,
    UNPAID,
    Reservation,
)
from parkway.models.space import Space
from parkway.services.availability_service import resolve_availability, to_local_window
from parkway.services.conflict_service import has_conflict, lock_space
from parkway.services.event_service import EventPublisher, ReservationEvent

logger = structlog.get_logger(__name__)

CENTS = Decimal("0.01")

# actor_id used by the payment collaborator and maintenance jobs
SYSTEM_ACTOR = None

AUTO_EXPIRE_REASON = "AUTO_EXPIRE"

OVERLAP_CONSTRAINT = "reservations_no_overlap"


class ReservationError(str, enum.Enum):
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INVALID_WINDOW = "INVALID_WINDOW"
    SELF_BOOKING = "SELF_BOOKING"
    NOT_AVAILABLE = "NOT_AVAILABLE"
    SLOT_TAKEN = "SLOT_TAKEN"
    INVALID_TRANSITION = "INVALID_TRANSITION"


class ReservationAction(str, enum.Enum):
    CONFIRM = "confirm"
    REJECT = "reject"
    CANCEL = "cancel"
    COMPLETE = "complete"


# action -> (legal source statuses, target status)
TRANSITIONS: dict[ReservationAction, tuple[tuple[str, ...], str]] = {
    ReservationAction.CONFIRM: ((PENDING,), CONFIRMED),
    ReservationAction.REJECT: ((PENDING,), REJECTED),
    ReservationAction.CANCEL: ((PENDING, CONFIRMED), CANCELLED),
    ReservationAction.COMPLETE: ((CONFIRMED,), COMPLETED),
}

_TIMESTAMP_FIELD = {
    CONFIRMED: "confirmed_at",
    REJECTED: "rejected_at",
    CANCELLED: "cancelled_at",
    COMPLETED: "completed_at",
}


@dataclass(frozen=True)
class ReservationResult:
    """Outcome of a booking operation.

    Business-rule refusals are ordinary outcomes and come back here instead of
    being raised.
    """

    reservation: Reservation | None = None
    error: ReservationError | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, reservation: Reservation) -> "ReservationResult":
        return cls(reservation=reservation)

    @classmethod
    def failure(cls, error: ReservationError, detail: str = "", reservation: Reservation | None = None) -> "ReservationResult":
        return cls(reservation=reservation, error=error, detail=detail)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def compute_total(hourly_rate: Decimal, start_at: datetime, end_at: datetime) -> Decimal:
    hours = Decimal(str((end_at - start_at).total_seconds())) / Decimal(3600)
    return (Decimal(hourly_rate) * hours).quantize(CENTS, rounding=ROUND_HALF_UP)


def _refuse(db: Session, error: ReservationError, detail: str, **log_ctx) -> ReservationResult:
    # releases the space lock taken by create_reservation
    db.rollback()
    logger.info("reservation_refused", error=error.value, detail=detail, **log_ctx)
    return ReservationResult.failure(error, detail)


def _is_overlap_violation(exc: IntegrityError) -> bool:
    # 23P01 = exclusion_violation
    if getattr(exc.orig, "pgcode", None) == "23P01":
        return True
    return OVERLAP_CONSTRAINT in str(exc.orig)


def _validate_window(start_at: datetime, end_at: datetime, now: datetime) -> str | None:
    if start_at.tzinfo is None or end_at.tzinfo is None:
        return "Timestamps must carry a timezone"
    if start_at >= end_at:
        return "Invalid time range"
    if start_at <= now:
        return "Start time must be in the future"
    horizon = now + timedelta(days=get_settings().booking_horizon_days)
    if start_at > horizon:
        return "Start time is too far ahead"
    if to_local_window(start_at, end_at) is None:
        return "Reservation must be within a single day"
    return None


def create_reservation(
    db: Session,
    *,
    space_id: str,
    requester_id: str,
    start_at: datetime,
    end_at: datetime,
    publisher: EventPublisher,
    now: datetime | None = None,
) -> ReservationResult:
    """Create a pending reservation if the window is bookable and free.

    The space row stays locked from the conflict check until the insert
    commits, so two callers racing for the same slot are served one after the
    other. On PostgreSQL the `reservations_no_overlap` exclusion constraint
    backs this up; an insert rejected by it is reported as SLOT_TAKEN.
    """
    now = now or _utcnow()
    ctx = {"space_id": space_id, "requester_id": requester_id}

    space = lock_space(db, space_id)
    if space is None or not space.is_active:
        return _refuse(db, ReservationError.NOT_FOUND, "Space not found", **ctx)

    if space.owner_id == requester_id:
        return _refuse(db, ReservationError.SELF_BOOKING, "Owners cannot book their own space", **ctx)

    problem = _validate_window(start_at, end_at, now)
    if problem:
        return _refuse(db, ReservationError.INVALID_WINDOW, problem, **ctx)

    window = to_local_window(start_at, end_at)
    match = resolve_availability(space, window.date, window.start_time, window.end_time)
    if match is None:
        return _refuse(db, ReservationError.NOT_AVAILABLE, "Space is not available for the requested time", **ctx)

    if has_conflict(db, space_id=space_id, start_at=start_at, end_at=end_at):
        return _refuse(db, ReservationError.SLOT_TAKEN, "Time slot already booked", **ctx)

    reservation = Reservation(
        space_id=space_id,
        requester_id=requester_id,
        start_at=start_at,
        end_at=end_at,
        status=PENDING,
        payment_status=UNPAID,
        hourly_rate=match.hourly_rate,
        total_amount=compute_total(match.hourly_rate, start_at, end_at),
    )
    db.add(reservation)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        if not _is_overlap_violation(exc):
            raise
        logger.warning("slot_taken_on_insert", **ctx)
        return ReservationResult.failure(ReservationError.SLOT_TAKEN, "Time slot already booked")

    publisher.publish(db, ReservationEvent(reservation.id, None, PENDING, actor_id=requester_id, occurred_at=now))
    db.commit()

    logger.info(
        "reservation_created",
        reservation_id=reservation.id,
        total_amount=str(reservation.total_amount),
        **ctx,
    )
    return ReservationResult.success(reservation)


def _actor_allowed(action: ReservationAction, reservation: Reservation, space: Space | None, actor_id: str | None) -> bool:
    is_system = actor_id is SYSTEM_ACTOR
    is_requester = not is_system and actor_id == reservation.requester_id
    is_owner = not is_system and space is not None and actor_id == space.owner_id

    if action is ReservationAction.CONFIRM:
        return is_system
    if action is ReservationAction.REJECT:
        return is_owner
    if action is ReservationAction.COMPLETE:
        return is_system or is_owner

    # cancel
    if reservation.status == PENDING:
        return is_requester or is_system
    if reservation.status == CONFIRMED:
        return is_requester or is_owner
    return is_requester or is_owner or is_system


def _apply_transition(
    db: Session,
    reservation: Reservation,
    action: ReservationAction,
    *,
    actor_id: str | None,
    publisher: EventPublisher,
    now: datetime,
    extra_values: dict | None = None,
    guards: tuple = (),
) -> ReservationResult:
    """Apply one transition as a single guarded UPDATE.

    `guards` are extra WHERE predicates; when any no longer holds the row is
    left untouched and the re-read state decides the outcome.
    """
    sources, target = TRANSITIONS[action]

    if reservation.status == target:
        return ReservationResult.success(reservation)
    if reservation.status not in sources:
        return ReservationResult.failure(
            ReservationError.INVALID_TRANSITION,
            f"Cannot {action.value} a {reservation.status} reservation",
            reservation,
        )
    if action is ReservationAction.COMPLETE and reservation.end_at > now:
        return ReservationResult.failure(ReservationError.INVALID_TRANSITION, "Reservation window has not elapsed", reservation)

    from_status = reservation.status
    values = {"status": target, _TIMESTAMP_FIELD[target]: now}
    if extra_values:
        values.update(extra_values)

    # optimistic guard: only applies if nobody moved the row since we read it
    result = db.execute(
        update(Reservation)
        .where(Reservation.id == reservation.id)
        .where(Reservation.status == from_status, *guards)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        db.refresh(reservation)
        logger.info("reservation_transition_lost_race", reservation_id=reservation.id, action=action.value)
        if reservation.status == target:
            return ReservationResult.success(reservation)
        detail = (
            "Reservation changed concurrently"
            if reservation.status == from_status
            else f"Cannot {action.value} a {reservation.status} reservation"
        )
        return ReservationResult.failure(ReservationError.INVALID_TRANSITION, detail, reservation)

    publisher.publish(db, ReservationEvent(reservation.id, from_status, target, actor_id=actor_id, occurred_at=now))
    db.commit()
    db.refresh(reservation)

    logger.info(
        "reservation_transitioned",
        reservation_id=reservation.id,
        from_status=from_status,
        to_status=target,
        actor_id=actor_id,
    )
    return ReservationResult.success(reservation)


def transition_reservation(
    db: Session,
    *,
    reservation_id: str,
    action: ReservationAction,
    actor_id: str | None,
    publisher: EventPublisher,
    reason: str = "",
    now: datetime | None = None,
) -> ReservationResult:
    """Move a reservation along its lifecycle on behalf of `actor_id`.

    `actor_id=None` is the system (payment collaborator, maintenance jobs).
    Repeating a transition whose target is the current status succeeds
    without emitting an event.
    """
    now = now or _utcnow()
    action = ReservationAction(action)

    reservation = db.get(Reservation, reservation_id)
    if reservation is None:
        return ReservationResult.failure(ReservationError.NOT_FOUND, "Reservation not found")

    space = db.get(Space, reservation.space_id)
    if not _actor_allowed(action, reservation, space, actor_id):
        return ReservationResult.failure(ReservationError.FORBIDDEN, "Not allowed", reservation)

    extra = {"cancel_reason": reason[:255]} if action is ReservationAction.CANCEL else None
    return _apply_transition(db, reservation, action, actor_id=actor_id, publisher=publisher, now=now, extra_values=extra)


def get_reservation_for_actor(db: Session, *, reservation_id: str, actor_id: str) -> ReservationResult:
    reservation = db.get(Reservation, reservation_id)
    if reservation is None:
        return ReservationResult.failure(ReservationError.NOT_FOUND, "Reservation not found")
    space = db.get(Space, reservation.space_id)
    if actor_id != reservation.requester_id and (space is None or actor_id != space.owner_id):
        return ReservationResult.failure(ReservationError.FORBIDDEN, "Not allowed")
    return ReservationResult.success(reservation)


def list_reservations_for_actor(
    db: Session,
    *,
    actor_id: str,
    role: str = "requester",
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Reservation], int]:
    """
    One page of the actor's reservations, newest first, with the total count.

    role="requester" lists bookings the actor made; role="owner" lists
    bookings on spaces the actor owns.
    """
    q = select(Reservation)
    if role == "owner":
        q = q.join(Space, Space.id == Reservation.space_id).where(Space.owner_id == actor_id)
    else:
        q = q.where(Reservation.requester_id == actor_id)
    if status:
        q = q.where(Reservation.status == status)

    total = db.execute(select(func.count()).select_from(q.subquery())).scalar_one()
    rows = db.execute(
        q.options(selectinload(Reservation.space))
        .order_by(Reservation.created_at.desc(), Reservation.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return list(rows), total



# Payment collaborator signals


def mark_payment_succeeded(db: Session, *, reservation_id: str, publisher: EventPublisher, now: datetime | None = None) -> ReservationResult:
    """Record a captured payment and confirm the reservation.

    For a pending reservation the payment status and the confirmation are
    written by one guarded UPDATE, so a reservation is never left paid but
    unconfirmed.
    """
    now = now or _utcnow()
    reservation = db.get(Reservation, reservation_id)
    if reservation is None:
        return ReservationResult.failure(ReservationError.NOT_FOUND, "Reservation not found")
    if reservation.payment_status == REFUNDED:
        return ReservationResult.failure(ReservationError.INVALID_TRANSITION, "Payment already refunded", reservation)

    if reservation.status == PENDING:
        result = _apply_transition(
            db,
            reservation,
            ReservationAction.CONFIRM,
            actor_id=SYSTEM_ACTOR,
            publisher=publisher,
            now=now,
            extra_values={"payment_status": PAID},
            guards=(Reservation.payment_status != REFUNDED,),
        )
        if result.ok:
            return result

    if reservation.payment_status != PAID:
        db.execute(
            update(Reservation)
            .where(Reservation.id == reservation.id, Reservation.payment_status.not_in((PAID, REFUNDED)))
            .values(payment_status=PAID)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.refresh(reservation)

    if reservation.status in (CONFIRMED, COMPLETED) and reservation.payment_status == PAID:
        return ReservationResult.success(reservation)

    # paid for a reservation that can no longer be confirmed; the payment side refunds
    logger.warning("payment_for_unconfirmable_reservation", reservation_id=reservation_id, status=reservation.status)
    return ReservationResult.failure(
        ReservationError.INVALID_TRANSITION, f"Cannot confirm a {reservation.status} reservation", reservation
    )



def mark_payment_failed(db: Session, *, reservation_id: str) -> ReservationResult:
    """Flag a failed charge; the reservation stays pending so the driver can retry."""
    reservation = db.get(Reservation, reservation_id)
    if reservation is None:
        return ReservationResult.failure(ReservationError.NOT_FOUND, "Reservation not found")
    if reservation.payment_status in (PAID, REFUNDED):
        return ReservationResult.failure(
            ReservationError.INVALID_TRANSITION, f"Payment already {reservation.payment_status}", reservation
        )
    if reservation.payment_status != FAILED:
        reservation.payment_status = FAILED
        db.commit()
        logger.info("payment_failed", reservation_id=reservation_id, status=reservation.status)
    return ReservationResult.success(reservation)


def mark_payment_refunded(db: Session, *, reservation_id: str) -> ReservationResult:
    reservation = db.get(Reservation, reservation_id)
    if reservation is None:
        return ReservationResult.failure(ReservationError.NOT_FOUND, "Reservation not found")
    if reservation.payment_status == REFUNDED:
        return ReservationResult.success(reservation)
    if reservation.payment_status != PAID:
        return ReservationResult.failure(
            ReservationError.INVALID_TRANSITION, f"Cannot refund a {reservation.payment_status} payment", reservation
        )
    reservation.payment_status = REFUNDED
    db.commit()
    logger.info("payment_refunded", reservation_id=reservation_id, status=reservation.status)
    return ReservationResult.success(reservation)


# Maintenance jobs


def expire_stale_pending(db: Session, *, publisher: EventPublisher, now: datetime | None = None) -> int:
    """Cancel pending reservations whose payment never arrived."""
    now = now or _utcnow()
    cutoff = now - timedelta(minutes=get_settings().pending_expiry_minutes)
    q = select(Reservation).where(
        Reservation.status == PENDING,
        Reservation.payment_status.in_((UNPAID, FAILED)),
        Reservation.created_at < cutoff,
    )
    targets = db.execute(q).scalars().all()

    expired = 0
    for r in targets:
        result = _apply_transition(
            db,
            r,
            ReservationAction.CANCEL,
            actor_id=SYSTEM_ACTOR,
            publisher=publisher,
            now=now,
            extra_values={"cancel_reason": AUTO_EXPIRE_REASON, "payment_status": FAILED},
            # a payment captured after the SELECT above keeps the reservation alive
            guards=(Reservation.payment_status.in_((UNPAID, FAILED)),),
        )
        if result.ok and r.status == CANCELLED:
            expired += 1
    logger.info("pending_reservations_expired", count=expired)
    return expired


def complete_elapsed(db: Session, *, publisher: EventPublisher, now: datetime | None = None) -> int:
    """Mark confirmed reservations whose window has ended as completed."""
    now = now or _utcnow()
    q = select(Reservation).where(Reservation.status == CONFIRMED, Reservation.end_at <= now)
    targets = db.execute(q).scalars().all()

    completed = 0
    for r in targets:
        result = _apply_transition(db, r, ReservationAction.COMPLETE, actor_id=SYSTEM_ACTOR, publisher=publisher, now=now)
        if result.ok and r.status == COMPLETED:
            completed += 1
    logger.info("reservations_completed", count=completed)
    return completed
