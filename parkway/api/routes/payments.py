from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from parkway.api.routes._helpers import unwrap
from parkway.core.deps import get_db, get_event_publisher, require_payment_webhook
from parkway.schemas.reservation import ReservationOut
from parkway.services.event_service import EventPublisher
from parkway.services.reservation_service import mark_payment_failed, mark_payment_refunded, mark_payment_succeeded

# Called by the payment collaborator, not by end users
router = APIRouter(dependencies=[Depends(require_payment_webhook)])


@router.post("/{reservation_id}/succeeded", response_model=ReservationOut)
def payment_succeeded(reservation_id: str, db: Session = Depends(get_db), publisher: EventPublisher = Depends(get_event_publisher)):
    return unwrap(mark_payment_succeeded(db, reservation_id=reservation_id, publisher=publisher))


@router.post("/{reservation_id}/failed", response_model=ReservationOut)
def payment_failed(reservation_id: str, db: Session = Depends(get_db)):
    return unwrap(mark_payment_failed(db, reservation_id=reservation_id))


@router.post("/{reservation_id}/refunded", response_model=ReservationOut)
def payment_refunded(reservation_id: str, db: Session = Depends(get_db)):
    return unwrap(mark_payment_refunded(db, reservation_id=reservation_id))
