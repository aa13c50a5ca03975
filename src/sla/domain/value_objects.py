"""
SLA Value Objects
==================

Immutable value objects for SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

import math
from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.config import (
    SLAKind,
    DEFAULT_FIRST_RESPONSE_MINUTES,
    DEFAULT_PRIORITY_MULTIPLIERS,
    DEFAULT_RESOLUTION_MINUTES,
    SLA_WARNING_FRACTION,
)
from src.sla.domain.entities import SLAVerdict


class SLAConfig(BaseModel):
    """
    SLA configuration for one account.

    Effective deadline = base minutes × priority multiplier. A priority
    missing from ``priority_multipliers`` is not scaled.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(default="default", description="Display name of the SLA policy")
    first_response_minutes: float = Field(
        default=DEFAULT_FIRST_RESPONSE_MINUTES,
        gt=0,
        description="Minutes allowed until the first reply"
    )
    resolution_minutes: float = Field(
        default=DEFAULT_RESOLUTION_MINUTES,
        gt=0,
        description="Minutes allowed until resolution"
    )
    priority_multipliers: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_PRIORITY_MULTIPLIERS),
        description="Deadline multiplier by priority label"
    )
    is_active: bool = Field(default=True, description="Whether SLA tracking is on")

    @field_validator("priority_multipliers")
    @classmethod
    def validate_multipliers(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Multipliers must be positive."""
        for priority, multiplier in v.items():
            if multiplier <= 0:
                raise ValueError(f"multiplier for '{priority}' must be > 0, got {multiplier}")
        return v

    def get_multiplier(self, priority: Optional[str]) -> float:
        """Multiplier for ``priority``, 1.0 when not configured."""
        if priority is None:
            return 1.0
        return self.priority_multipliers.get(priority, 1.0)

    def to_record(self) -> dict:
        """Serialize with the field names the store uses."""
        return self.model_dump(mode="json")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards positive infinity."""
    return math.floor(value + 0.5)


def format_remaining(minutes: int) -> str:
    """
    Compact magnitude of a remaining/overdue duration.

    Examples: ``45min``, ``3h``, ``2d``. The sign is dropped; callers know
    from the verdict whether the deadline is past.
    """
    magnitude = abs(minutes)
    if magnitude < 60:
        return f"{magnitude}min"
    if magnitude < 1440:
        return f"{round_half_up(magnitude / 60)}h"
    return f"{round_half_up(magnitude / 1440)}d"


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class, all SLA calculation logic in one place.
    """

    @staticmethod
    def effective_deadline_minutes(
        kind: str,
        priority: Optional[str],
        config: SLAConfig
    ) -> float:
        """Base minutes for the clock scaled by the priority multiplier."""
        base = (
            config.first_response_minutes
            if kind == SLAKind.FIRST_RESPONSE
            else config.resolution_minutes
        )
        return base * config.get_multiplier(priority)

    @staticmethod
    def evaluate(
        created_at: datetime,
        first_responded_at: Optional[datetime],
        priority: Optional[str],
        config: Optional[SLAConfig],
        now: datetime
    ) -> Optional[SLAVerdict]:
        """
        Compute the SLA verdict for a conversation.

        Before the first reply the first-response clock applies, afterwards
        the resolution clock. Elapsed time is measured from ``created_at``
        for both clocks.

        Args:
            created_at: When the conversation was opened
            first_responded_at: When the first reply went out, if it did
            priority: Priority label used to look up the multiplier
            config: SLA configuration; None means no SLA is configured
            now: Evaluation instant

        Returns:
            SLAVerdict, or None when SLA tracking is off
        """
        if config is None or not config.is_active:
            return None

        kind = SLAKind.FIRST_RESPONSE if first_responded_at is None else SLAKind.RESOLUTION
        deadline_minutes = SLACalculator.effective_deadline_minutes(kind, priority, config)

        elapsed_minutes = (_as_utc(now) - _as_utc(created_at)).total_seconds() / 60
        remaining = deadline_minutes - elapsed_minutes

        return SLAVerdict(
            kind=kind,
            is_breached=remaining <= 0,
            is_warning=0 < remaining <= deadline_minutes * SLA_WARNING_FRACTION,
            remaining_minutes=round_half_up(remaining),
        )
