from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from parkway.core.security import create_access_token
from parkway.services.event_service import ReservationEvent

NY = ZoneInfo("America/New_York")

# Fixed clock for service tests: Wednesday 2030-01-02 07:00 in New York
NOW = datetime(2030, 1, 2, 12, 0, tzinfo=timezone.utc)
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)


def local(day: date, hhmm: str) -> datetime:
    """Aware UTC instant for a wall-clock time in the canonical timezone."""
    hh, mm = hhmm.split(":")
    return datetime.combine(day, time(int(hh), int(mm)), tzinfo=NY).astimezone(timezone.utc)


class RecordingPublisher:
    def __init__(self) -> None:
        self.events: list[ReservationEvent] = []

    def publish(self, db: Session, event: ReservationEvent) -> None:
        self.events.append(event)

    @property
    def transitions(self) -> list[tuple[str | None, str]]:
        return [(e.from_status, e.to_status) for e in self.events]


WEBHOOK_HEADERS = {"X-Webhook-Secret": "test-webhook-secret"}


def upcoming_monday() -> date:
    """A Monday at least a week out, so windows on it are in the future against the real clock."""
    today = datetime.now(NY).date()
    return today + timedelta(days=7 + (7 - today.weekday()) % 7)


def at(day: date, hhmm: str) -> str:
    """ISO-8601 UTC string for a wall-clock time in the canonical timezone."""
    return local(day, hhmm).isoformat()


def auth(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}
