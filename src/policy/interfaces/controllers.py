"""
Policy Controllers (API Routes)
================================

FastAPI routes for business hours, SLA verdicts and status monitoring.

Controllers are thin - they delegate to the PolicyEngine stored on
``app.state.policy_engine``.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.policy.application import (
    BusinessHoursStatusResponse,
    ForceCheckResponse,
    MonitoringSnapshotResponse,
    MonitoringStartRequest,
    PolicyEngine,
    RefreshResponse,
    ScheduleConfigResponse,
    ScheduleConfigUpdate,
    SLAConfigResponse,
    SLAConfigUpdate,
    SLAVerdictEnvelope,
)
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/policy", tags=["Temporal Policies"])


# ========== Dependencies ==========

def get_policy_engine(request: Request) -> PolicyEngine:
    """Get the application's policy engine."""
    engine = getattr(request.app.state, "policy_engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Policy engine not initialized"
        )
    return engine


# ========== Business Hours ==========

@router.get(
    "/business-hours/status",
    response_model=BusinessHoursStatusResponse,
    summary="Business hours verdict",
    description="Whether the instant is inside business hours, and the auto-reply to send if not. "
                "Without a business hours record the answer is always open."
)
async def business_hours_status(
    at: Optional[datetime] = Query(None, description="Instant to evaluate (ISO-8601), defaults to now"),
    engine: PolicyEngine = Depends(get_policy_engine)
) -> BusinessHoursStatusResponse:
    instant = at or engine.now()
    return BusinessHoursStatusResponse(
        is_open=engine.is_open(instant),
        auto_reply=engine.auto_reply_for(instant),
        evaluated_at=instant
    )


@router.get(
    "/business-hours/config",
    response_model=ScheduleConfigResponse,
    summary="Current business hours record"
)
async def get_business_hours_config(
    engine: PolicyEngine = Depends(get_policy_engine)
) -> ScheduleConfigResponse:
    return ScheduleConfigResponse.model_validate(engine.require_schedule_config().to_record())


@router.put(
    "/business-hours/config",
    response_model=ScheduleConfigResponse,
    summary="Update business hours",
    description="Merges the sent fields into the stored record and reloads it."
)
async def update_business_hours_config(
    update: ScheduleConfigUpdate,
    engine: PolicyEngine = Depends(get_policy_engine)
) -> ScheduleConfigResponse:
    config = await engine.save_schedule_config(update.model_dump(exclude_unset=True))
    logger.info("Business hours updated", extra={"owner_id": engine.owner_id})
    return ScheduleConfigResponse.model_validate(config.to_record())


# ========== SLA ==========

@router.get(
    "/sla/verdict",
    response_model=SLAVerdictEnvelope,
    summary="SLA verdict of a conversation",
    description="First-response clock until the first reply, resolution clock afterwards. "
                "The verdict is null while SLA tracking is off."
)
async def sla_verdict(
    created_at: datetime = Query(..., description="Conversation creation time (ISO-8601)"),
    first_responded_at: Optional[datetime] = Query(None, description="First reply time, if any"),
    priority: Optional[str] = Query(None, description="Priority label, e.g. high"),
    at: Optional[datetime] = Query(None, description="Instant to evaluate, defaults to now"),
    engine: PolicyEngine = Depends(get_policy_engine)
) -> SLAVerdictEnvelope:
    instant = at or engine.now()
    verdict = engine.sla_verdict(created_at, first_responded_at, priority, instant)
    return SLAVerdictEnvelope(
        verdict=verdict.to_dict() if verdict else None,
        evaluated_at=instant
    )


@router.get(
    "/sla/config",
    response_model=SLAConfigResponse,
    summary="Current SLA record"
)
async def get_sla_config(
    engine: PolicyEngine = Depends(get_policy_engine)
) -> SLAConfigResponse:
    return SLAConfigResponse.model_validate(engine.require_sla_config().to_record())


@router.put(
    "/sla/config",
    response_model=SLAConfigResponse,
    summary="Update SLA policy",
    description="Merges the sent fields into the stored record and reloads it."
)
async def update_sla_config(
    update: SLAConfigUpdate,
    engine: PolicyEngine = Depends(get_policy_engine)
) -> SLAConfigResponse:
    config = await engine.save_sla_config(update.model_dump(exclude_unset=True))
    logger.info("SLA policy updated", extra={"owner_id": engine.owner_id})
    return SLAConfigResponse.model_validate(config.to_record())


@router.post(
    "/config/refresh",
    response_model=RefreshResponse,
    summary="Reload business hours and SLA records"
)
async def refresh_config(
    engine: PolicyEngine = Depends(get_policy_engine)
) -> RefreshResponse:
    await engine.refresh()
    return RefreshResponse(
        business_hours_loaded=engine.schedule_config is not None,
        sla_loaded=engine.sla_config is not None
    )


# ========== Monitoring ==========

@router.get(
    "/monitoring",
    response_model=MonitoringSnapshotResponse,
    summary="Monitoring session snapshot"
)
async def monitoring_snapshot(
    engine: PolicyEngine = Depends(get_policy_engine)
) -> MonitoringSnapshotResponse:
    return MonitoringSnapshotResponse.model_validate(engine.monitor_snapshot())


@router.post(
    "/monitoring/start",
    response_model=MonitoringSnapshotResponse,
    summary="Start monitoring instances",
    description="A different target set replaces the running session and its state."
)
async def start_monitoring(
    request: MonitoringStartRequest,
    engine: PolicyEngine = Depends(get_policy_engine)
) -> MonitoringSnapshotResponse:
    await engine.start_monitoring(request.targets)
    return MonitoringSnapshotResponse.model_validate(engine.monitor_snapshot())


@router.post(
    "/monitoring/stop",
    response_model=MonitoringSnapshotResponse,
    summary="Stop monitoring"
)
async def stop_monitoring(
    engine: PolicyEngine = Depends(get_policy_engine)
) -> MonitoringSnapshotResponse:
    engine.stop_monitoring()
    return MonitoringSnapshotResponse.model_validate(engine.monitor_snapshot())


@router.post(
    "/monitoring/check",
    response_model=ForceCheckResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Check all instances now",
    description="Runs an extra sweep in the background; the regular schedule is untouched."
)
async def force_check(
    engine: PolicyEngine = Depends(get_policy_engine)
) -> ForceCheckResponse:
    return ForceCheckResponse(scheduled=engine.force_check() is not None)
