from __future__ import annotations

from fastapi import APIRouter

from parkway.api.routes import payments, reservations, spaces

api_router = APIRouter()

api_router.include_router(spaces.router, prefix="/spaces", tags=["spaces"])
api_router.include_router(reservations.router, prefix="/reservations", tags=["reservations"])

# Payment collaborator callbacks
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
