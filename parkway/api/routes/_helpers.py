from __future__ import annotations

from fastapi import HTTPException

from parkway.models.reservation import Reservation
from parkway.services.reservation_service import ReservationError, ReservationResult

ERROR_STATUS = {
    ReservationError.NOT_FOUND: 404,
    ReservationError.FORBIDDEN: 403,
    ReservationError.SLOT_TAKEN: 409,
    ReservationError.INVALID_TRANSITION: 409,
    ReservationError.SELF_BOOKING: 400,
    ReservationError.NOT_AVAILABLE: 400,
    ReservationError.INVALID_WINDOW: 400,
}


def unwrap(result: ReservationResult) -> Reservation:
    """Return the reservation or raise the HTTP error matching the refusal."""
    if result.ok:
        return result.reservation
    raise HTTPException(
        status_code=ERROR_STATUS[result.error],
        detail={"code": result.error.value, "message": result.detail},
    )
