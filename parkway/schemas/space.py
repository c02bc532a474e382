from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from parkway.schemas.availability_rule import AvailabilityRuleIn, AvailabilityRuleOut


class SpaceCreate(BaseModel):
    title: str = Field(default="", max_length=255)
    address: str = Field(min_length=1, max_length=500)
    hourly_rate: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    availability_rules: list[AvailabilityRuleIn] = Field(default_factory=list)


class SpaceUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    hourly_rate: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    is_available: bool | None = None
    is_active: bool | None = None


class SpaceOut(BaseModel):
    id: str
    owner_id: str
    title: str
    address: str
    latitude: float | None
    longitude: float | None
    is_active: bool
    is_available: bool
    hourly_rate: Decimal
    availability_rules: list[AvailabilityRuleOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


class SearchHitOut(BaseModel):
    space: SpaceOut
    distance_km: float
    hourly_rate: Decimal | None = None
    estimated_total: Decimal | None = None


class SearchResponse(BaseModel):
    results: list[SearchHitOut]
    count: int
