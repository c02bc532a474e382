"""
Address geocoding with a read-through cache.

Lookups go space row -> in-process cache -> provider. The cache is shared by
all requests in the process and is safe to drop at any time; the durable copy
of a resolved address lives on the space row.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

import httpx
import structlog
from geopy.distance import great_circle

from parkway.core.config import get_settings
from parkway.models.space import Space

logger = structlog.get_logger(__name__)

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


class GeocodingError(Exception):
    """The provider could not resolve an address (timeout, HTTP error, no result)."""


class Geocoder(Protocol):
    def geocode(self, address: str) -> Coordinates: ...


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance on a spherical earth."""
    return great_circle((a.lat, a.lng), (b.lat, b.lng), radius=EARTH_RADIUS_KM).km


def is_valid_coordinates(lat: float, lng: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lng <= 180 and not (math.isnan(lat) or math.isnan(lng))


def normalize_address(address: str) -> str:
    return " ".join(address.lower().split())


class NominatimGeocoder:
    """Geocoder backed by a Nominatim-compatible `/search` endpoint."""

    def __init__(self, base_url: str, user_agent: str, timeout: float = 5.0, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self._client = client

    def _get(self, url: str, params: dict) -> httpx.Response:
        headers = {"User-Agent": self.user_agent}
        if self._client is not None:
            return self._client.get(url, params=params, headers=headers, timeout=self.timeout)
        with httpx.Client(timeout=self.timeout) as client:
            return client.get(url, params=params, headers=headers)

    def geocode(self, address: str) -> Coordinates:
        if not address or not address.strip():
            raise GeocodingError("Address is required for geocoding")

        params = {"format": "json", "q": address.strip(), "limit": 1}
        try:
            r = self._get(f"{self.base_url}/search", params)
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise GeocodingError(f"Geocoding request failed: {exc}") from exc

        if not data:
            raise GeocodingError(f"No result for address {address!r}")
        try:
            coords = Coordinates(lat=float(data[0]["lat"]), lng=float(data[0]["lon"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocodingError("Invalid geocoding response: missing coordinates") from exc
        if not is_valid_coordinates(coords.lat, coords.lng):
            raise GeocodingError("Invalid geocoding response: coordinates out of range")
        return coords


class GeoCache:
    """
    Thread-safe in-memory address cache with TTL.

    Keys are normalized addresses, so "12 Oak St" and " 12  oak st" share an
    entry. Addresses the provider could not resolve are remembered for the
    shorter `failure_ttl_seconds`.
    """

    def __init__(self, ttl_seconds: int = 86400, failure_ttl_seconds: int = 300):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.failure_ttl = timedelta(seconds=failure_ttl_seconds)
        self._cache: dict[str, tuple[Coordinates, datetime]] = {}
        self._failures: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def get(self, address: str) -> Coordinates | None:
        key = normalize_address(address)
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            coords, expires_at = entry
            if datetime.now(timezone.utc) < expires_at:
                return coords
            del self._cache[key]
        return None

    def set(self, address: str, coords: Coordinates) -> None:
        with self._lock:
            self._cache[normalize_address(address)] = (coords, datetime.now(timezone.utc) + self.ttl)

    def mark_failed(self, address: str) -> None:
        with self._lock:
            self._failures[normalize_address(address)] = datetime.now(timezone.utc) + self.failure_ttl

    def recently_failed(self, address: str) -> bool:
        key = normalize_address(address)
        with self._lock:
            expires_at = self._failures.get(key)
            if expires_at is None:
                return False
            if datetime.now(timezone.utc) < expires_at:
                return True
            del self._failures[key]
        return False

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._failures.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._cache)


class GeoResolver:
    def __init__(self, geocoder: Geocoder, cache: GeoCache | None = None):
        self.geocoder = geocoder
        self.cache = cache or GeoCache()

    def resolve(self, address: str) -> Coordinates:
        """Cache-first lookup; raises GeocodingError on a provider miss or a remembered one."""
        cached = self.cache.get(address)
        if cached is not None:
            return cached
        if self.cache.recently_failed(address):
            raise GeocodingError(f"Recent lookup for {address!r} failed")
        try:
            coords = self.geocoder.geocode(address)
        except GeocodingError:
            self.cache.mark_failed(address)
            raise
        self.cache.set(address, coords)
        logger.debug("geocode_cached", address=address, lat=coords.lat, lng=coords.lng)
        return coords

    def resolve_space(self, space: Space) -> Coordinates | None:
        """Coordinates for a space, or None when they cannot be determined.

        A fresh geocode is written back onto the space row; the caller owns the
        commit.
        """
        if space.coordinates is not None:
            lat, lng = space.coordinates
            return Coordinates(lat=lat, lng=lng)
        try:
            coords = self.resolve(space.address)
        except GeocodingError as exc:
            logger.warning("geocode_failed", space_id=space.id, error=str(exc))
            return None
        space.latitude = coords.lat
        space.longitude = coords.lng
        return coords


_default_resolver: GeoResolver | None = None
_default_lock = threading.Lock()


def get_geo_resolver() -> GeoResolver:
    """Process-wide resolver built from settings."""
    global _default_resolver
    with _default_lock:
        if _default_resolver is None:
            settings = get_settings()
            _default_resolver = GeoResolver(
                NominatimGeocoder(
                    settings.geocoder_base_url,
                    settings.geocoder_user_agent,
                    timeout=settings.geocoder_timeout_seconds,
                ),
                GeoCache(
                    ttl_seconds=settings.geocode_cache_ttl_seconds,
                    failure_ttl_seconds=settings.geocode_failure_ttl_seconds,
                ),
            )
        return _default_resolver
