from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from parkway.core.config import get_settings
from parkway.models.space import Space
from parkway.services.availability_service import LocalWindow, canonical_tz, resolve_availability, to_instants, to_local_window
from parkway.services.conflict_service import has_conflict
from parkway.services.geo_service import Coordinates, GeoResolver, haversine_km
from parkway.services.reservation_service import compute_total

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SearchHit:
    space: Space
    distance_km: float
    hourly_rate: Decimal | None = None  # effective rate for the requested window
    estimated_total: Decimal | None = None


def search_spaces(
    db: Session,
    *,
    origin: Coordinates,
    radius_km: float,
    resolver: GeoResolver,
    window: LocalWindow | None = None,
    min_rate: Decimal | None = None,
    max_rate: Decimal | None = None,
    now: datetime | None = None,
) -> list[SearchHit]:
    """Spaces within `radius_km` of `origin`, nearest first.

    With a window, only spaces that could actually be booked for it are
    returned: the availability rules must match and no pending or confirmed
    reservation may overlap. A window that has already started or lies past
    the booking horizon has no hits.
    """
    settings = get_settings()

    bounds = to_instants(window) if window is not None else None
    if bounds is not None:
        now = now or datetime.now(tz=timezone.utc)
        start_at, _ = bounds
        if start_at < now or start_at > now + timedelta(days=settings.booking_horizon_days):
            logger.info("space_search_window_out_of_range", start_at=start_at.isoformat())
            return []

    q = select(Space).where(Space.is_active == True, Space.is_available == True)
    if min_rate is not None:
        q = q.where(Space.hourly_rate >= min_rate)
    if max_rate is not None:
        q = q.where(Space.hourly_rate <= max_rate)
    candidates = db.execute(q).scalars().all()

    hits: list[SearchHit] = []
    geocoded = False
    for space in candidates:
        had_coords = space.coordinates is not None
        coords = resolver.resolve_space(space)
        if coords is None:
            continue
        geocoded = geocoded or not had_coords

        distance = haversine_km(origin, coords)
        if distance > radius_km:
            continue

        if window is None:
            hits.append(SearchHit(space=space, distance_km=distance))
            continue

        match = resolve_availability(space, window.date, window.start_time, window.end_time)
        if match is None:
            continue
        start_at, end_at = bounds
        if has_conflict(db, space_id=space.id, start_at=start_at, end_at=end_at):
            continue
        hits.append(
            SearchHit(
                space=space,
                distance_km=distance,
                hourly_rate=match.hourly_rate,
                estimated_total=compute_total(match.hourly_rate, start_at, end_at),
            )
        )

    if geocoded:
        # persist coordinates resolved during this search
        db.commit()

    hits.sort(key=lambda h: (h.distance_km, h.space.id))
    logger.info("space_search", candidates=len(candidates), hits=len(hits), radius_km=radius_km)
    return hits[: settings.search_max_results]


def book_now_window(duration_minutes: int, now: datetime | None = None) -> LocalWindow | None:
    """Window starting now in the canonical timezone; None if it would cross midnight."""
    now = now or datetime.now(tz=timezone.utc)
    return to_local_window(now, now + timedelta(minutes=duration_minutes), canonical_tz())


def search_book_now(
    db: Session,
    *,
    origin: Coordinates,
    radius_km: float,
    resolver: GeoResolver,
    duration_minutes: int | None = None,
    now: datetime | None = None,
) -> list[SearchHit]:
    now = now or datetime.now(tz=timezone.utc)
    duration = duration_minutes or get_settings().book_now_default_minutes
    window = book_now_window(duration, now)
    if window is None:
        return []
    return search_spaces(db, origin=origin, radius_km=radius_km, resolver=resolver, window=window, now=now)
