from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from parkway.core.deps import get_current_user_id, get_db, get_geo_resolver
from parkway.models.space import Space
from parkway.schemas.availability_rule import HHMM_PATTERN, AvailabilityCheckOut, AvailabilityRulesReplace
from parkway.schemas.space import SearchHitOut, SearchResponse, SpaceCreate, SpaceOut, SpaceUpdate
from parkway.services.availability_service import LocalWindow, parse_hhmm, resolve_space_availability
from parkway.services.geo_service import Coordinates, GeoResolver
from parkway.services.search_service import SearchHit, search_book_now, search_spaces
from parkway.services.space_service import create_space, get_owned_space, replace_rules, update_space

router = APIRouter()


def _search_response(hits: list[SearchHit]) -> SearchResponse:
    results = [
        SearchHitOut(
            space=SpaceOut.model_validate(h.space),
            distance_km=round(h.distance_km, 3),
            hourly_rate=h.hourly_rate,
            estimated_total=h.estimated_total,
        )
        for h in hits
    ]
    return SearchResponse(results=results, count=len(results))


@router.post("", response_model=SpaceOut, status_code=201)
def create(payload: SpaceCreate, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return create_space(db, owner_id=user_id, payload=payload)


@router.get("/search", response_model=SearchResponse)
def search(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    radius_km: float = Query(default=10.0, gt=0, le=500),
    on_date: date | None = Query(default=None, alias="date"),
    start_time: str | None = Query(default=None, pattern=HHMM_PATTERN),
    end_time: str | None = Query(default=None, pattern=HHMM_PATTERN),
    min_rate: Decimal | None = Query(default=None, ge=0),
    max_rate: Decimal | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
    resolver: GeoResolver = Depends(get_geo_resolver),
):
    window = None
    window_parts = (on_date, start_time, end_time)
    if any(p is not None for p in window_parts):
        if not all(p is not None for p in window_parts):
            raise HTTPException(status_code=400, detail="date, start_time and end_time go together")
        if start_time >= end_time:
            raise HTTPException(status_code=400, detail="Invalid time range")
        window = LocalWindow(date=on_date, start_time=parse_hhmm(start_time), end_time=parse_hhmm(end_time))

    hits = search_spaces(
        db,
        origin=Coordinates(lat=lat, lng=lng),
        radius_km=radius_km,
        resolver=resolver,
        window=window,
        min_rate=min_rate,
        max_rate=max_rate,
    )
    return _search_response(hits)


@router.get("/search/now", response_model=SearchResponse)
def search_now(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    radius_km: float = Query(default=10.0, gt=0, le=500),
    duration_minutes: int | None = Query(default=None, ge=15, le=24 * 60),
    db: Session = Depends(get_db),
    resolver: GeoResolver = Depends(get_geo_resolver),
):
    hits = search_book_now(
        db,
        origin=Coordinates(lat=lat, lng=lng),
        radius_km=radius_km,
        resolver=resolver,
        duration_minutes=duration_minutes,
    )
    return _search_response(hits)


@router.get("/{space_id}", response_model=SpaceOut)
def get_space(space_id: str, db: Session = Depends(get_db)):
    space = db.get(Space, space_id)
    if not space or not space.is_active:
        raise HTTPException(status_code=404, detail="Space not found")
    return space


@router.get("/{space_id}/availability", response_model=AvailabilityCheckOut)
def check_availability(
    space_id: str,
    on_date: date = Query(alias="date"),
    start_time: str = Query(pattern=HHMM_PATTERN),
    end_time: str = Query(pattern=HHMM_PATTERN),
    db: Session = Depends(get_db),
):
    space = db.get(Space, space_id)
    if not space or not space.is_active:
        raise HTTPException(status_code=404, detail="Space not found")
    if start_time >= end_time:
        raise HTTPException(status_code=400, detail="Invalid time range")

    match = resolve_space_availability(
        db, space_id=space_id, day=on_date, start_time=parse_hhmm(start_time), end_time=parse_hhmm(end_time)
    )
    return AvailabilityCheckOut(
        space_id=space_id,
        date=on_date,
        start_time=start_time,
        end_time=end_time,
        bookable=match is not None,
        hourly_rate=match.hourly_rate if match else None,
        rule_kind=match.rule.kind if match else None,
    )


@router.patch("/{space_id}", response_model=SpaceOut)
def patch_space(space_id: str, payload: SpaceUpdate, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    space = get_owned_space(db, space_id=space_id, owner_id=user_id)
    return update_space(db, space=space, payload=payload)


@router.put("/{space_id}/rules", response_model=SpaceOut)
def put_rules(space_id: str, payload: AvailabilityRulesReplace, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    space = get_owned_space(db, space_id=space_id, owner_id=user_id)
    return replace_rules(db, space=space, rules=payload.rules)
