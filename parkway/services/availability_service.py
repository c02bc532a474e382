from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from parkway.core.config import get_settings
from parkway.models.availability_rule import WEEKDAYS, AvailabilityRule, DateOverrideRule, RecurringRule
from parkway.models.space import Space


@dataclass(frozen=True)
class MatchResult:
    hourly_rate: Decimal
    rule: AvailabilityRule


@dataclass(frozen=True)
class LocalWindow:
    """A booking window expressed on a single calendar date."""

    date: date
    start_time: time
    end_time: time


def canonical_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().timezone)


def parse_hhmm(value: str) -> time:
    if len(value) != 5 or value[2] != ":":
        raise ValueError(f"expected HH:MM, got {value!r}")
    return time(int(value[:2]), int(value[3:]))


def weekday_name(d: date) -> str:
    return WEEKDAYS[d.weekday()]


def to_local_window(start_at: datetime, end_at: datetime, tz: ZoneInfo | None = None) -> LocalWindow | None:
    """Project an instant range onto the canonical calendar.

    Returns None when the range does not sit on one local date.
    """
    tz = tz or canonical_tz()
    ls = start_at.astimezone(tz)
    le = end_at.astimezone(tz)
    if ls.date() != le.date():
        return None
    return LocalWindow(date=ls.date(), start_time=ls.time().replace(tzinfo=None), end_time=le.time().replace(tzinfo=None))


def to_instants(window: LocalWindow, tz: ZoneInfo | None = None) -> tuple[datetime, datetime]:
    tz = tz or canonical_tz()
    start_at = datetime.combine(window.date, window.start_time).replace(tzinfo=tz)
    end_at = datetime.combine(window.date, window.end_time).replace(tzinfo=tz)
    return start_at.astimezone(ZoneInfo("UTC")), end_at.astimezone(ZoneInfo("UTC"))


def _within(rule: AvailabilityRule, start_time: time, end_time: time) -> bool:
    return parse_hhmm(rule.start_time) <= start_time and end_time <= parse_hhmm(rule.end_time)


def resolve_availability(space: Space, day: date, start_time: time, end_time: time) -> MatchResult | None:
    """Answer whether [start_time, end_time] on `day` is bookable, and at what rate.

    A date override for `day` replaces the weekly schedule entirely, including
    when its hours do not cover the request. Without one, an enabled recurring
    rule for the weekday must contain the window; the base hourly rate applies.
    """
    if not space.is_active or not space.is_available:
        return None
    if start_time >= end_time:
        return None

    overrides = [r for r in space.availability_rules if isinstance(r, DateOverrideRule) and r.date == day]
    if overrides:
        for rule in overrides:
            if _within(rule, start_time, end_time):
                rate = rule.hourly_rate if rule.hourly_rate is not None else space.hourly_rate
                return MatchResult(hourly_rate=Decimal(rate), rule=rule)
        return None

    name = weekday_name(day)
    for rule in space.availability_rules:
        if not isinstance(rule, RecurringRule) or rule.day_of_week != name or not rule.enabled:
            continue
        if _within(rule, start_time, end_time):
            return MatchResult(hourly_rate=Decimal(space.hourly_rate), rule=rule)
    return None


def resolve_space_availability(db: Session, *, space_id: str, day: date, start_time: time, end_time: time) -> MatchResult | None:
    space = db.get(Space, space_id)
    if space is None:
        return None
    return resolve_availability(space, day, start_time, end_time)
