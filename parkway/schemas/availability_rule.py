from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, model_validator

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

DayOfWeek = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class _RuleHours(BaseModel):
    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)

    @model_validator(mode="after")
    def _check_order(self):
        # zero-padded HH:MM compares correctly as text
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class RecurringRuleIn(_RuleHours):
    kind: Literal["RECURRING"] = "RECURRING"
    day_of_week: DayOfWeek
    enabled: bool = True


class DateOverrideRuleIn(_RuleHours):
    kind: Literal["DATE_OVERRIDE"] = "DATE_OVERRIDE"
    date: dt.date
    hourly_rate: Decimal = Field(ge=0, max_digits=10, decimal_places=2)


AvailabilityRuleIn = Annotated[Union[RecurringRuleIn, DateOverrideRuleIn], Field(discriminator="kind")]


class RecurringRuleOut(BaseModel):
    id: str
    kind: Literal["RECURRING"]
    day_of_week: str
    start_time: str
    end_time: str
    enabled: bool

    class Config:
        from_attributes = True


class DateOverrideRuleOut(BaseModel):
    id: str
    kind: Literal["DATE_OVERRIDE"]
    date: dt.date
    start_time: str
    end_time: str
    hourly_rate: Decimal

    class Config:
        from_attributes = True


# `kind` literals keep the two shapes apart when validating ORM rows
AvailabilityRuleOut = Union[RecurringRuleOut, DateOverrideRuleOut]


class AvailabilityRulesReplace(BaseModel):
    rules: list[AvailabilityRuleIn] = Field(default_factory=list)


class AvailabilityCheckOut(BaseModel):
    space_id: str
    date: dt.date
    start_time: str
    end_time: str
    bookable: bool
    hourly_rate: Decimal | None = None
    rule_kind: str | None = None
