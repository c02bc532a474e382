"""Shared fixtures: an in-memory database, a recording event publisher and a space factory."""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TIMEZONE", "America/New_York")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Callable, Generator  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import parkway.models  # noqa: E402,F401
from parkway.db.base import Base  # noqa: E402
from parkway.db.session import build_engine  # noqa: E402
from parkway.models.availability_rule import DateOverrideRule, RecurringRule  # noqa: E402
from parkway.models.space import Space  # noqa: E402
from tests.helpers import RecordingPublisher  # noqa: E402


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def make_space(db: Session) -> Callable[..., Space]:
    """
    Factory for persisted spaces.

    Rules are given as tuples: ("monday", "08:00", "18:00") or
    ("monday", "08:00", "18:00", False) for recurring rules, and
    (date, "10:00", "12:00", Decimal("9")) for date overrides.
    """

    def _make(
        *,
        owner_id: str = "owner-1",
        rate: Decimal | str = Decimal("5"),
        rules: list[tuple] | None = None,
        lat: float | None = 40.7128,
        lng: float | None = -74.0060,
        address: str = "1 Main St, New York, NY",
        is_active: bool = True,
        is_available: bool = True,
        space_id: str | None = None,
    ) -> Space:
        space = Space(
            owner_id=owner_id,
            address=address,
            hourly_rate=Decimal(rate),
            latitude=lat,
            longitude=lng,
            is_active=is_active,
            is_available=is_available,
        )
        if space_id:
            space.id = space_id
        built = []
        for position, rule in enumerate(rules or []):
            if isinstance(rule[0], date):
                day, start, end, override_rate = rule
                built.append(
                    DateOverrideRule(position=position, date=day, start_time=start, end_time=end, hourly_rate=Decimal(override_rate))
                )
            else:
                weekday, start, end, *rest = rule
                enabled = rest[0] if rest else True
                built.append(RecurringRule(position=position, day_of_week=weekday, start_time=start, end_time=end, enabled=enabled))
        space.availability_rules = built
        db.add(space)
        # expire_on_commit=False keeps the loaded state; no transaction is left open
        db.commit()
        return space

    return _make
