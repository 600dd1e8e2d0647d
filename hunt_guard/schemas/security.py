"""
Pydantic schemas for security events, flagged submissions, alerts and metrics.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import Field

from hunt_guard.schemas.submission import CamelModel, UtcDatetime, utc_now


class SecurityEventType(str, Enum):
    FRAUD_DETECTED = "FRAUD_DETECTED"
    GPS_SPOOFING = "GPS_SPOOFING"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    DUPLICATE_SUBMISSION = "DUPLICATE_SUBMISSION"
    SUSPICIOUS_PATTERN = "SUSPICIOUS_PATTERN"
    VALIDATION_FAILURE = "VALIDATION_FAILURE"
    IMPOSSIBLE_TRAVEL = "IMPOSSIBLE_TRAVEL"
    POOR_GPS_ACCURACY = "POOR_GPS_ACCURACY"
    RAPID_SUBMISSIONS = "RAPID_SUBMISSIONS"
    AUTOMATED_BEHAVIOR = "AUTOMATED_BEHAVIOR"
    PHOTO_VALIDATION_FAILED = "PHOTO_VALIDATION_FAILED"
    LOCATION_VERIFICATION_FAILED = "LOCATION_VERIFICATION_FAILED"


class Severity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


SEVERITY_ORDER = {
    Severity.low: 1,
    Severity.medium: 2,
    Severity.high: 3,
    Severity.critical: 4,
}


class ReviewStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    escalated = "escalated"


class AlertType(str, Enum):
    threshold_exceeded = "threshold_exceeded"
    pattern_detected = "pattern_detected"
    critical_event = "critical_event"


class MetricsTimeframe(str, Enum):
    hour = "hour"
    day = "day"
    week = "week"
    month = "month"


class SecurityEvent(CamelModel):
    """Append-only audit record. Only the resolution fields ever change."""
    id: str = Field(default_factory=lambda: f"sec_{uuid.uuid4().hex}")
    # Unrecognised types are kept verbatim
    type: Union[SecurityEventType, str] = Field(..., union_mode="left_to_right")
    severity: Severity
    user_id: str
    description: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    challenge_id: Optional[str] = None
    submission_id: Optional[str] = None
    timestamp: UtcDatetime = Field(default_factory=utc_now)
    resolved: bool = False
    resolved_by: Optional[str] = None
    resolved_at: Optional[UtcDatetime] = None
    resolution_notes: Optional[str] = None

    @property
    def type_value(self) -> str:
        return self.type.value if isinstance(self.type, SecurityEventType) else str(self.type)


class ReviewRecord(CamelModel):
    reviewer_id: str
    decision: ReviewStatus
    notes: Optional[str] = None
    reviewed_at: UtcDatetime = Field(default_factory=utc_now)


class FlaggedSubmission(CamelModel):
    submission_id: str
    user_id: str
    challenge_id: Optional[str] = None
    flagged_at: UtcDatetime = Field(default_factory=utc_now)
    flag_reason: str
    severity: Severity
    indicators: List[str] = Field(default_factory=list)
    score: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)
    review_status: ReviewStatus = ReviewStatus.pending
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[UtcDatetime] = None
    review_notes: Optional[str] = None
    review_history: List[ReviewRecord] = Field(default_factory=list)


class SecurityAlert(CamelModel):
    id: str = Field(default_factory=lambda: f"alert_{uuid.uuid4().hex}")
    rule: str
    type: AlertType
    title: str
    description: str
    severity: Severity
    triggered_at: UtcDatetime = Field(default_factory=utc_now)
    related_events: List[str] = Field(default_factory=list)
    action_required: bool = True
    suggested_actions: List[str] = Field(default_factory=list)
    acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[UtcDatetime] = None


class OffendingUser(CamelModel):
    user_id: str
    event_count: int
    first_event_at: datetime
    last_event_at: datetime


class TrendPoint(CamelModel):
    period: str
    event_count: int
    fraud_attempts: int


class SecurityMetrics(CamelModel):
    timeframe: MetricsTimeframe
    total_events: int
    events_by_type: Dict[str, int]
    events_by_severity: Dict[str, int]
    unique_users_affected: int
    top_offending_users: List[OffendingUser]
    recent_trends: List[TrendPoint]
    resolved_events: int
    pending_review: int
    average_resolution_time: float = Field(..., description="Hours")
