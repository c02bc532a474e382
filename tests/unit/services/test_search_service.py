"""Unit tests for nearby-space search."""

from __future__ import annotations

from datetime import time
from decimal import Decimal

import pytest

from parkway.core.config import get_settings
from parkway.models.reservation import CANCELLED, CONFIRMED, Reservation
from parkway.models.space import Space
from parkway.services.availability_service import LocalWindow
from parkway.services.geo_service import Coordinates, GeoCache, GeocodingError, GeoResolver
from parkway.services.search_service import book_now_window, search_book_now, search_spaces
from tests.helpers import MONDAY, NOW, TUESDAY, local

ORIGIN = Coordinates(40.7128, -74.0060)
# roughly 1.1 km of latitude
STEP = 0.01

OPEN_MONDAY = [("monday", "08:00", "18:00")]


class StaticGeocoder:
    def __init__(self, known: dict[str, Coordinates]):
        self.known = known
        self.calls: list[str] = []

    def geocode(self, address: str) -> Coordinates:
        self.calls.append(address)
        try:
            return self.known[address]
        except KeyError:
            raise GeocodingError(f"unknown address {address}") from None


@pytest.fixture
def resolver() -> GeoResolver:
    return GeoResolver(StaticGeocoder({}), GeoCache(ttl_seconds=60))


def _north(make_space, km_steps: int, **kwargs) -> Space:
    kwargs.setdefault("rules", OPEN_MONDAY)
    return make_space(lat=ORIGIN.lat + STEP * km_steps, lng=ORIGIN.lng, **kwargs)


def _book(db, space: Space, start: str, end: str, status: str = CONFIRMED) -> None:
    db.add(
        Reservation(
            space_id=space.id,
            requester_id="driver-x",
            start_at=local(MONDAY, start),
            end_at=local(MONDAY, end),
            status=status,
            hourly_rate=Decimal("5"),
            total_amount=Decimal("10"),
        )
    )
    db.commit()


@pytest.mark.unit
def test_results_are_within_radius_and_nearest_first(db, make_space, resolver) -> None:
    far = _north(make_space, 4)
    near = _north(make_space, 1)
    _north(make_space, 20)

    hits = search_spaces(db, origin=ORIGIN, radius_km=5, resolver=resolver)

    assert [h.space.id for h in hits] == [near.id, far.id]
    assert hits[0].distance_km == pytest.approx(1.11, abs=0.02)
    assert hits[0].hourly_rate is None


@pytest.mark.unit
def test_equal_distance_ties_break_on_id(db, make_space, resolver) -> None:
    _north(make_space, 1, space_id="b-space")
    _north(make_space, 1, space_id="a-space")

    hits = search_spaces(db, origin=ORIGIN, radius_km=5, resolver=resolver)

    assert [h.space.id for h in hits] == ["a-space", "b-space"]


@pytest.mark.unit
def test_inactive_and_unavailable_spaces_are_excluded(db, make_space, resolver) -> None:
    visible = _north(make_space, 1)
    _north(make_space, 1, is_active=False)
    _north(make_space, 1, is_available=False)

    hits = search_spaces(db, origin=ORIGIN, radius_km=5, resolver=resolver)

    assert [h.space.id for h in hits] == [visible.id]


@pytest.mark.unit
def test_results_are_capped(db, make_space, resolver, monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "search_max_results", 2)
    for i in range(1, 5):
        _north(make_space, i)

    hits = search_spaces(db, origin=ORIGIN, radius_km=10, resolver=resolver)

    assert len(hits) == 2
    assert hits[0].distance_km < hits[1].distance_km


@pytest.mark.unit
def test_window_filters_on_rules_and_prices_the_hit(db, make_space, resolver) -> None:
    open_space = _north(make_space, 1, rate="4")
    _north(make_space, 2, rules=[("tuesday", "08:00", "18:00")])
    window = LocalWindow(MONDAY, time(10), time(12))

    hits = search_spaces(db, origin=ORIGIN, radius_km=5, resolver=resolver, window=window, now=NOW)

    assert [h.space.id for h in hits] == [open_space.id]
    assert hits[0].hourly_rate == Decimal("4")
    assert hits[0].estimated_total == Decimal("8.00")


@pytest.mark.unit
def test_window_uses_override_rate(db, make_space, resolver) -> None:
    space = _north(make_space, 1, rules=OPEN_MONDAY + [(MONDAY, "09:00", "13:00", Decimal("9"))])
    window = LocalWindow(MONDAY, time(10), time(11))

    hits = search_spaces(db, origin=ORIGIN, radius_km=5, resolver=resolver, window=window, now=NOW)

    assert [h.space.id for h in hits] == [space.id]
    assert hits[0].hourly_rate == Decimal("9")


@pytest.mark.unit
def test_window_excludes_booked_spaces(db, make_space, resolver) -> None:
    booked = _north(make_space, 1)
    freed = _north(make_space, 2)
    touching = _north(make_space, 3)
    _book(db, booked, "11:00", "13:00")
    _book(db, freed, "10:00", "12:00", status=CANCELLED)
    _book(db, touching, "12:00", "13:00")
    window = LocalWindow(MONDAY, time(10), time(12))

    hits = search_spaces(db, origin=ORIGIN, radius_km=5, resolver=resolver, window=window, now=NOW)

    assert [h.space.id for h in hits] == [freed.id, touching.id]


@pytest.mark.unit
def test_window_already_started_has_no_hits(db, make_space, resolver) -> None:
    _north(make_space, 1)
    window = LocalWindow(MONDAY, time(10), time(12))

    assert search_spaces(db, origin=ORIGIN, radius_km=5, resolver=resolver, window=window, now=local(MONDAY, "10:30")) == []


@pytest.mark.unit
def test_window_past_booking_horizon_has_no_hits(db, make_space, resolver, monkeypatch) -> None:
    _north(make_space, 1)
    window = LocalWindow(MONDAY, time(10), time(12))
    monkeypatch.setattr(get_settings(), "booking_horizon_days", 3)

    assert search_spaces(db, origin=ORIGIN, radius_km=5, resolver=resolver, window=window, now=NOW) == []



@pytest.mark.unit
def test_rate_filters(db, make_space, resolver) -> None:
    _north(make_space, 1, rate="3")
    mid = _north(make_space, 2, rate="6")
    _north(make_space, 3, rate="12")

    hits = search_spaces(
        db, origin=ORIGIN, radius_km=5, resolver=resolver, min_rate=Decimal("4"), max_rate=Decimal("10")
    )

    assert [h.space.id for h in hits] == [mid.id]


@pytest.mark.unit
def test_spaces_are_geocoded_on_demand(db, make_space) -> None:
    geocoder = StaticGeocoder({"5 Known Rd": Coordinates(ORIGIN.lat + STEP, ORIGIN.lng)})
    resolver = GeoResolver(geocoder, GeoCache(ttl_seconds=60))
    known = make_space(lat=None, lng=None, address="5 Known Rd", rules=OPEN_MONDAY)
    make_space(lat=None, lng=None, address="Nowhere", rules=OPEN_MONDAY)

    hits = search_spaces(db, origin=ORIGIN, radius_km=5, resolver=resolver)

    assert [h.space.id for h in hits] == [known.id]
    db.expire_all()
    stored = db.get(Space, known.id)
    assert stored.latitude == pytest.approx(ORIGIN.lat + STEP)

    search_spaces(db, origin=ORIGIN, radius_km=5, resolver=resolver)
    assert geocoder.calls.count("5 Known Rd") == 1
    assert geocoder.calls.count("Nowhere") == 1


@pytest.mark.unit
def test_book_now_window() -> None:
    window = book_now_window(90, now=local(MONDAY, "10:15"))

    assert window == LocalWindow(MONDAY, time(10, 15), time(11, 45))
    assert book_now_window(60, now=local(MONDAY, "23:30")) is None


@pytest.mark.unit
def test_search_book_now(db, make_space, resolver) -> None:
    monday_only = _north(make_space, 1)
    _north(make_space, 2, rules=[("tuesday", "00:00", "23:59")])

    hits = search_book_now(db, origin=ORIGIN, radius_km=5, resolver=resolver, now=local(MONDAY, "09:00"))
    assert [h.space.id for h in hits] == [monday_only.id]
    assert hits[0].estimated_total == Decimal("5.00")

    assert search_book_now(db, origin=ORIGIN, radius_km=5, resolver=resolver, now=local(TUESDAY, "23:30")) == []
