from __future__ import annotations

from typing import Iterable

import structlog
from fastapi import HTTPException
from sqlalchemy.orm import Session

from parkway.models.availability_rule import AvailabilityRule, DateOverrideRule, RecurringRule
from parkway.models.space import Space
from parkway.schemas.availability_rule import DateOverrideRuleIn, RecurringRuleIn
from parkway.schemas.space import SpaceCreate, SpaceUpdate

logger = structlog.get_logger(__name__)


def _build_rules(rules: Iterable[RecurringRuleIn | DateOverrideRuleIn]) -> list[AvailabilityRule]:
    built: list[AvailabilityRule] = []
    for position, rule in enumerate(rules):
        if isinstance(rule, RecurringRuleIn):
            built.append(
                RecurringRule(
                    position=position,
                    day_of_week=rule.day_of_week,
                    start_time=rule.start_time,
                    end_time=rule.end_time,
                    enabled=rule.enabled,
                )
            )
        else:
            built.append(
                DateOverrideRule(
                    position=position,
                    date=rule.date,
                    start_time=rule.start_time,
                    end_time=rule.end_time,
                    hourly_rate=rule.hourly_rate,
                )
            )
    return built


def get_owned_space(db: Session, *, space_id: str, owner_id: str) -> Space:
    space = db.get(Space, space_id)
    if not space or not space.is_active:
        raise HTTPException(status_code=404, detail="Space not found")
    if space.owner_id != owner_id:
        raise HTTPException(status_code=403, detail="Only the owner can change this space")
    return space


def create_space(db: Session, *, owner_id: str, payload: SpaceCreate) -> Space:
    space = Space(
        owner_id=owner_id,
        title=payload.title,
        address=payload.address,
        hourly_rate=payload.hourly_rate,
        latitude=payload.latitude,
        longitude=payload.longitude,
    )
    space.availability_rules = _build_rules(payload.availability_rules)
    db.add(space)
    db.commit()
    db.refresh(space)
    logger.info("space_created", space_id=space.id, owner_id=owner_id)
    return space


def update_space(db: Session, *, space: Space, payload: SpaceUpdate) -> Space:
    """Apply owner edits. Existing reservations keep the rate they were created with."""
    data = payload.dict(exclude_unset=True)
    for k, v in data.items():
        if v is not None:
            setattr(space, k, v)
    db.commit()
    db.refresh(space)
    logger.info("space_updated", space_id=space.id, fields=sorted(data.keys()))
    return space


def replace_rules(db: Session, *, space: Space, rules: Iterable[RecurringRuleIn | DateOverrideRuleIn]) -> Space:
    space.availability_rules = _build_rules(rules)
    db.commit()
    db.refresh(space)
    logger.info("space_rules_replaced", space_id=space.id, count=len(space.availability_rules))
    return space
