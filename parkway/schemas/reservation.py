from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class ReservationCreate(BaseModel):
    space_id: str
    start_at: datetime
    end_at: datetime


class ReservationTransitionRequest(BaseModel):
    reason: str = Field(default="", max_length=255)


class ReservationOut(BaseModel):
    id: str
    space_id: str
    requester_id: str
    start_at: datetime
    end_at: datetime
    status: str
    payment_status: str
    hourly_rate: Decimal
    total_amount: Decimal
    created_at: datetime
    confirmed_at: datetime | None = None
    rejected_at: datetime | None = None
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None
    cancel_reason: str = ""

    class Config:
        from_attributes = True


class ReservationSpaceOut(BaseModel):
    id: str
    title: str
    address: str
    latitude: float | None = None
    longitude: float | None = None

    class Config:
        from_attributes = True


class ReservationListItemOut(ReservationOut):
    space: ReservationSpaceOut


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ReservationPage(BaseModel):
    items: list[ReservationListItemOut]
    pagination: Pagination
