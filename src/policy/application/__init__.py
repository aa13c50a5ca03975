"""
Policy Application Layer
=========================

Application layer of the policy orchestrator.

Contains:
- Services: PolicyEngine, the composition root of the temporal policies
- Store Interfaces: IScheduleConfigStore, ISLAConfigStore
- DTOs: Pydantic models for the HTTP API
"""

from src.policy.application.dto import (
    BusinessHoursStatusResponse,
    DayScheduleDTO,
    ForceCheckResponse,
    MonitoringSnapshotResponse,
    MonitoringStartRequest,
    RefreshResponse,
    ScheduleConfigResponse,
    ScheduleConfigUpdate,
    SLAConfigResponse,
    SLAConfigUpdate,
    SLAVerdictEnvelope,
    SLAVerdictResponse,
)
from src.policy.application.services import (
    IScheduleConfigStore,
    ISLAConfigStore,
    PolicyEngine,
)

__all__ = [
    # DTOs
    "BusinessHoursStatusResponse",
    "DayScheduleDTO",
    "ForceCheckResponse",
    "MonitoringSnapshotResponse",
    "MonitoringStartRequest",
    "RefreshResponse",
    "ScheduleConfigResponse",
    "ScheduleConfigUpdate",
    "SLAConfigResponse",
    "SLAConfigUpdate",
    "SLAVerdictEnvelope",
    "SLAVerdictResponse",
    # Services
    "PolicyEngine",
    # Store Interfaces
    "IScheduleConfigStore",
    "ISLAConfigStore",
]
