"""
Security Router - audit events, review queue, metrics and alerts

Internal admin surface; every endpoint requires the X-API-Key header.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field

from hunt_guard.dependencies import get_security_monitor, verify_api_key
from hunt_guard.schemas.security import (
    FlaggedSubmission, MetricsTimeframe, ReviewStatus, SecurityAlert,
    SecurityEvent, SecurityMetrics, Severity
)
from hunt_guard.schemas.submission import CamelModel
from hunt_guard.services.security_monitoring_service import SecurityMonitoringService

router = APIRouter(dependencies=[Depends(verify_api_key)])


class SecurityEventCreate(CamelModel):
    type: str
    severity: str = Severity.medium.value
    user_id: str
    description: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    challenge_id: Optional[str] = None
    submission_id: Optional[str] = None


class ResolveEventRequest(CamelModel):
    resolved_by: str
    notes: Optional[str] = None


class FlagSubmissionRequest(CamelModel):
    submission_id: str
    user_id: str
    challenge_id: Optional[str] = None
    reason: str
    severity: Severity = Severity.medium
    indicators: List[str] = Field(default_factory=list)
    score: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ReviewRequest(CamelModel):
    reviewer_id: str
    decision: ReviewStatus
    notes: Optional[str] = None


class AcknowledgeRequest(CamelModel):
    acknowledged_by: str


# ============================================
# EVENTS
# ============================================
@router.post("/events", status_code=201)
async def log_event(
    request: SecurityEventCreate,
    monitor: SecurityMonitoringService = Depends(get_security_monitor)
):
    event_id = monitor.log_security_event(
        request.type,
        request.severity,
        request.user_id,
        request.description,
        request.metadata,
        request.challenge_id,
        request.submission_id
    )
    return {"eventId": event_id}


@router.get("/events/user/{user_id}", response_model=List[SecurityEvent])
async def get_user_events(
    user_id: str,
    limit: int = Query(20, ge=1, le=500),
    monitor: SecurityMonitoringService = Depends(get_security_monitor)
):
    return monitor.get_user_security_events(user_id, limit)


@router.post("/events/{event_id}/resolve", response_model=SecurityEvent)
async def resolve_event(
    event_id: str,
    request: ResolveEventRequest,
    monitor: SecurityMonitoringService = Depends(get_security_monitor)
):
    if not monitor.resolve_security_event(event_id, request.resolved_by, request.notes):
        raise HTTPException(status_code=404, detail="Security event not found")
    return monitor.get_event(event_id)


# ============================================
# REVIEW QUEUE
# ============================================
@router.post("/flags", response_model=FlaggedSubmission, status_code=201)
async def flag_submission(
    request: FlagSubmissionRequest,
    monitor: SecurityMonitoringService = Depends(get_security_monitor)
):
    return monitor.flag_submission_for_review(
        request.submission_id,
        request.user_id,
        request.challenge_id,
        request.reason,
        request.severity,
        indicators=request.indicators,
        score=request.score,
        metadata=request.metadata
    )


@router.get("/flags", response_model=List[FlaggedSubmission])
async def list_flags(
    status: str = Query("pending", description="Review status, or 'all'"),
    limit: int = Query(50, ge=1, le=500),
    monitor: SecurityMonitoringService = Depends(get_security_monitor)
):
    if status != "all" and status not in {s.value for s in ReviewStatus}:
        raise HTTPException(status_code=422, detail=f"Unknown review status '{status}'")
    return monitor.get_flagged_submissions(status, limit)


@router.post("/flags/{submission_id}/review", response_model=FlaggedSubmission)
async def review_flag(
    submission_id: str,
    request: ReviewRequest,
    monitor: SecurityMonitoringService = Depends(get_security_monitor)
):
    flagged = monitor.get_flagged_submission(submission_id)
    if not flagged:
        raise HTTPException(status_code=404, detail="Flagged submission not found")

    if not monitor.review_flagged_submission(
        submission_id, request.reviewer_id, request.decision, request.notes
    ):
        raise HTTPException(
            status_code=409,
            detail=f"Cannot move review from {flagged.review_status.value} to {request.decision.value}"
        )
    return monitor.get_flagged_submission(submission_id)


# ============================================
# METRICS & ALERTS
# ============================================
@router.get("/metrics", response_model=SecurityMetrics)
async def get_metrics(
    timeframe: MetricsTimeframe = Query(MetricsTimeframe.day),
    monitor: SecurityMonitoringService = Depends(get_security_monitor)
):
    return monitor.get_security_metrics(timeframe)


@router.get("/alerts", response_model=List[SecurityAlert])
async def get_alerts(
    monitor: SecurityMonitoringService = Depends(get_security_monitor)
):
    return monitor.get_active_alerts()


@router.post("/alerts/{alert_id}/acknowledge", response_model=SecurityAlert)
async def acknowledge_alert(
    alert_id: str,
    request: AcknowledgeRequest,
    monitor: SecurityMonitoringService = Depends(get_security_monitor)
):
    if not monitor.acknowledge_alert(alert_id, request.acknowledged_by):
        raise HTTPException(status_code=404, detail="Alert not found")
    return monitor.get_alert(alert_id)
