"""
Business Hours Value Objects
=============================

Immutable configuration records for the weekly opening schedule.

A record is replaced as a whole when it is saved; the evaluators only ever
read it.
"""

import json
from typing import Any, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.config import DEFAULT_AUTO_REPLY_TEMPLATE, DEFAULT_TIMEZONE


DAY_NAMES = ("Domingo", "Segunda", "Terça", "Quarta", "Quinta", "Sexta", "Sábado")


class DaySchedule(BaseModel):
    """
    Opening window for one weekday.

    ``start`` and ``end`` are kept verbatim; an entry whose times do not
    parse is skipped by the evaluator instead of rejected here.
    """
    model_config = ConfigDict(frozen=True)

    day: int = Field(..., ge=0, le=6, description="Weekday, 0 = Sunday")
    enabled: bool = Field(default=False, description="Whether the day opens at all")
    start: str = Field(default="09:00", description="Opening time, HH:MM")
    end: str = Field(default="18:00", description="Closing time, HH:MM")


class ScheduleConfig(BaseModel):
    """
    Business hours configuration for one account.

    The auto-reply template understands the ``{start}``, ``{end}`` and
    ``{dia}`` placeholders.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_enabled: bool = Field(default=False, description="Restrict to business hours")
    timezone: str = Field(default=DEFAULT_TIMEZONE, description="IANA timezone of the schedule")
    auto_reply_template: str = Field(
        default=DEFAULT_AUTO_REPLY_TEMPLATE,
        alias="auto_reply_message",
        description="Message sent outside business hours"
    )
    schedule: Tuple[DaySchedule, ...] = Field(
        default_factory=lambda: ScheduleConfig.default_schedule(),
        description="Weekly windows in declaration order"
    )

    @field_validator("schedule", mode="before")
    @classmethod
    def decode_schedule(cls, v: Any) -> Any:
        """The store may hand the schedule over JSON-encoded."""
        if isinstance(v, (str, bytes)):
            return json.loads(v)
        return v

    @staticmethod
    def default_schedule() -> Tuple[DaySchedule, ...]:
        """Monday to Friday, 09:00 to 18:00."""
        return tuple(
            DaySchedule(day=day, enabled=day not in (0, 6), start="09:00", end="18:00")
            for day in range(7)
        )

    def to_record(self) -> dict:
        """Serialize with the field names the store uses."""
        return self.model_dump(mode="json", by_alias=True)
