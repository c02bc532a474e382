from __future__ import annotations

from datetime import date
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from parkway.core.deps import get_db, get_event_publisher, get_geo_resolver
from parkway.main import create_app
from parkway.services.geo_service import Coordinates, GeoCache, GeocodingError, GeoResolver
from tests.helpers import RecordingPublisher, auth, upcoming_monday

KNOWN_ADDRESSES = {
    "350 5th Ave, New York, NY": Coordinates(40.7484, -73.9857),
}


class FakeGeocoder:
    def geocode(self, address: str) -> Coordinates:
        try:
            return KNOWN_ADDRESSES[address]
        except KeyError:
            raise GeocodingError(f"unknown address {address}") from None


@pytest.fixture
def api_publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def client(session_factory, api_publisher) -> Generator[TestClient, None, None]:
    app = create_app()

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    resolver = GeoResolver(FakeGeocoder(), GeoCache(ttl_seconds=60))
    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_geo_resolver] = lambda: resolver
    app.dependency_overrides[get_event_publisher] = lambda: api_publisher

    with TestClient(app) as c:
        yield c


@pytest.fixture
def monday() -> date:
    return upcoming_monday()


@pytest.fixture
def create_space_via_api(client):
    def _create(owner: str = "owner-1", **overrides) -> dict:
        body = {
            "title": "Driveway on Oak",
            "address": "12 Oak St, New York, NY",
            "hourly_rate": "5.00",
            "latitude": 40.7128,
            "longitude": -74.0060,
            "availability_rules": [
                {"kind": "RECURRING", "day_of_week": "monday", "start_time": "08:00", "end_time": "18:00"},
            ],
        }
        body.update(overrides)
        r = client.post("/api/spaces", json=body, headers=auth(owner))
        assert r.status_code == 201, r.text
        return r.json()

    return _create
