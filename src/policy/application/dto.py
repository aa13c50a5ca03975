"""
Policy Application DTOs
========================

Pydantic models for the policy API requests and responses.

Update DTOs are patches: only the fields a caller sends are merged into
the stored record.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


# ========== Type Aliases for Literals ==========
SLAKindStr = Literal["first_response", "resolution"]
PollerPhaseStr = Literal["idle", "active", "stopped"]
CadenceStr = Literal["fast", "normal"]


# ========== Request DTOs ==========

class DayScheduleDTO(BaseModel):
    """One weekday window."""
    day: int = Field(..., ge=0, le=6, description="Weekday, 0 = Sunday")
    enabled: bool = Field(..., description="Whether the day opens")
    start: str = Field(..., description="Opening time, HH:MM")
    end: str = Field(..., description="Closing time, HH:MM")


class ScheduleConfigUpdate(BaseModel):
    """Patch for the business hours record."""
    is_enabled: Optional[bool] = None
    timezone: Optional[str] = Field(None, min_length=1, description="IANA timezone")
    auto_reply_message: Optional[str] = Field(
        None,
        description="Template with {start}, {end} and {dia} placeholders"
    )
    schedule: Optional[List[DayScheduleDTO]] = None


class SLAConfigUpdate(BaseModel):
    """Patch for the SLA record."""
    name: Optional[str] = Field(None, min_length=1)
    first_response_minutes: Optional[float] = Field(None, gt=0)
    resolution_minutes: Optional[float] = Field(None, gt=0)
    priority_multipliers: Optional[Dict[str, float]] = None
    is_active: Optional[bool] = None


class MonitoringStartRequest(BaseModel):
    """Targets to monitor."""
    targets: List[str] = Field(..., description="Instance ids; empty leaves monitoring idle")


# ========== Response DTOs ==========

class BusinessHoursStatusResponse(BaseModel):
    """Business hours verdict at one instant."""
    is_open: bool
    auto_reply: Optional[str] = Field(None, description="Out-of-hours reply, null while open")
    evaluated_at: datetime


class DayScheduleResponse(DayScheduleDTO):
    pass


class ScheduleConfigResponse(BaseModel):
    is_enabled: bool
    timezone: str
    auto_reply_message: str
    schedule: List[DayScheduleResponse]


class SLAConfigResponse(BaseModel):
    name: str
    first_response_minutes: float
    resolution_minutes: float
    priority_multipliers: Dict[str, float]
    is_active: bool


class SLAVerdictResponse(BaseModel):
    """SLA verdict of one conversation."""
    kind: SLAKindStr
    is_breached: bool
    is_warning: bool
    remaining_minutes: int = Field(..., description="Negative once breached")
    remaining_display: str = Field(..., description="Compact magnitude, e.g. 45min, 3h")
    needs_attention: bool


class SLAVerdictEnvelope(BaseModel):
    verdict: Optional[SLAVerdictResponse] = Field(None, description="Null while SLA tracking is off")
    evaluated_at: datetime


class TargetStatusResponse(BaseModel):
    status: str
    last_polled_at: datetime


class MonitoringSnapshotResponse(BaseModel):
    phase: PollerPhaseStr
    cadence: Optional[CadenceStr] = None
    next_interval_seconds: Optional[float] = None
    targets: List[str] = Field(default_factory=list)
    statuses: Dict[str, TargetStatusResponse] = Field(default_factory=dict)


class ForceCheckResponse(BaseModel):
    scheduled: bool = Field(..., description="False when nothing is being monitored")


class RefreshResponse(BaseModel):
    business_hours_loaded: bool
    sla_loaded: bool
