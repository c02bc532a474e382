from __future__ import annotations

from math import ceil
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from parkway.api.routes._helpers import unwrap
from parkway.core.deps import get_current_user_id, get_db, get_event_publisher
from parkway.schemas.reservation import (
    Pagination,
    ReservationCreate,
    ReservationListItemOut,
    ReservationOut,
    ReservationPage,
    ReservationTransitionRequest,
)
from parkway.services.event_service import EventPublisher
from parkway.services.reservation_service import (
    ReservationAction,
    create_reservation,
    get_reservation_for_actor,
    list_reservations_for_actor,
    transition_reservation,
)

router = APIRouter()

ReservationStatus = Literal["pending", "confirmed", "rejected", "cancelled", "completed"]


@router.post("", response_model=ReservationOut, status_code=201)
def create(
    payload: ReservationCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    result = create_reservation(
        db,
        space_id=payload.space_id,
        requester_id=user_id,
        start_at=payload.start_at,
        end_at=payload.end_at,
        publisher=publisher,
    )
    return unwrap(result)


@router.get("", response_model=ReservationPage)
def list_reservations(
    role: Literal["requester", "owner"] = "requester",
    status: ReservationStatus | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    items, total = list_reservations_for_actor(db, actor_id=user_id, role=role, status=status, page=page, limit=limit)
    return ReservationPage(
        items=[ReservationListItemOut.model_validate(r) for r in items],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=ceil(total / limit)),
    )


@router.get("/{reservation_id}", response_model=ReservationOut)
def get_reservation(reservation_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return unwrap(get_reservation_for_actor(db, reservation_id=reservation_id, actor_id=user_id))


@router.post("/{reservation_id}/{action}", response_model=ReservationOut)
def transition(
    reservation_id: str,
    action: ReservationAction,
    payload: ReservationTransitionRequest | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    result = transition_reservation(
        db,
        reservation_id=reservation_id,
        action=action,
        actor_id=user_id,
        publisher=publisher,
        reason=payload.reason if payload else "",
    )
    return unwrap(result)
