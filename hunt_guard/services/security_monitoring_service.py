"""
Security Monitoring Service - audit events, alerting and the review queue

Downstream of validation; never gates a decision:
- Records security events derived from validation and fraud outcomes
- Recomputes rolling metrics and threshold alerts from the live event set
- Runs the flagged-submission human review workflow

Every public operation is best-effort. Failures are logged, never raised
into the caller's submission flow.
"""
import logging
import threading
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple, Union

from hunt_guard.config import settings
from hunt_guard.schemas.security import (
    SEVERITY_ORDER, AlertType, FlaggedSubmission, MetricsTimeframe, OffendingUser,
    ReviewRecord, ReviewStatus, SecurityAlert, SecurityEvent, SecurityEventType,
    SecurityMetrics, Severity, TrendPoint
)
from hunt_guard.schemas.submission import (
    FraudDetectionResult, FraudRisk, FraudSignalType, ValidationResult, utc_now
)

logger = logging.getLogger(__name__)

# Validation error code -> (event type, severity). Keyed on stable codes only.
ERROR_CODE_EVENTS: Dict[str, Tuple[SecurityEventType, Severity]] = {
    "FRAUD_DETECTED": (SecurityEventType.FRAUD_DETECTED, Severity.high),
    "GPS_SPOOFING_DETECTED": (SecurityEventType.GPS_SPOOFING, Severity.high),
    "RATE_LIMIT_EXCEEDED": (SecurityEventType.RATE_LIMIT_EXCEEDED, Severity.medium),
    "DUPLICATE_SUBMISSION": (SecurityEventType.DUPLICATE_SUBMISSION, Severity.medium),
    "LOCATION_TOO_FAR": (SecurityEventType.LOCATION_VERIFICATION_FAILED, Severity.low),
    "POOR_GPS_ACCURACY": (SecurityEventType.POOR_GPS_ACCURACY, Severity.low),
    "INVALID_PHOTO_DATA": (SecurityEventType.PHOTO_VALIDATION_FAILED, Severity.low),
    "MISSING_PHOTO": (SecurityEventType.PHOTO_VALIDATION_FAILED, Severity.low),
    "UNSUPPORTED_IMAGE_TYPE": (SecurityEventType.PHOTO_VALIDATION_FAILED, Severity.low),
    "PHOTO_TOO_LARGE": (SecurityEventType.PHOTO_VALIDATION_FAILED, Severity.low),
}
DEFAULT_ERROR_EVENT = (SecurityEventType.VALIDATION_FAILURE, Severity.low)

# Structured fraud signal -> specific event
SIGNAL_EVENTS: Dict[FraudSignalType, Tuple[SecurityEventType, Severity]] = {
    FraudSignalType.GPS_SPOOFING: (SecurityEventType.GPS_SPOOFING, Severity.high),
    FraudSignalType.IMPOSSIBLE_TRAVEL: (SecurityEventType.IMPOSSIBLE_TRAVEL, Severity.medium),
    FraudSignalType.RAPID_SUBMISSIONS: (SecurityEventType.RAPID_SUBMISSIONS, Severity.medium),
    FraudSignalType.AUTOMATED_BEHAVIOR: (SecurityEventType.AUTOMATED_BEHAVIOR, Severity.medium),
    FraudSignalType.POOR_GPS_ACCURACY: (SecurityEventType.POOR_GPS_ACCURACY, Severity.low),
}

# Fallback for fraud results that arrive without structured signals
REASON_KEYWORD_EVENTS: List[Tuple[str, SecurityEventType, Severity]] = [
    ("gps spoofing", SecurityEventType.GPS_SPOOFING, Severity.high),
    ("impossible travel", SecurityEventType.IMPOSSIBLE_TRAVEL, Severity.medium),
    ("rapid submission", SecurityEventType.RAPID_SUBMISSIONS, Severity.medium),
    ("automation", SecurityEventType.AUTOMATED_BEHAVIOR, Severity.medium),
]

REVIEW_TRANSITIONS: Dict[ReviewStatus, Set[ReviewStatus]] = {
    ReviewStatus.pending: {ReviewStatus.approved, ReviewStatus.rejected, ReviewStatus.escalated},
    ReviewStatus.escalated: {ReviewStatus.approved, ReviewStatus.rejected},
    ReviewStatus.approved: set(),
    ReviewStatus.rejected: set(),
}

ALERT_THRESHOLDS = {
    "fraud_events_per_hour": settings.ALERT_FRAUD_EVENTS_PER_HOUR,
    "unique_fraud_users_per_day": settings.ALERT_UNIQUE_FRAUD_USERS_PER_DAY,
    "gps_spoofing_per_hour": settings.ALERT_GPS_SPOOFING_PER_HOUR,
    "rate_limit_per_hour": settings.ALERT_RATE_LIMIT_PER_HOUR,
}

TIMEFRAME_WINDOWS = {
    MetricsTimeframe.hour: (timedelta(hours=1), timedelta(minutes=10)),
    MetricsTimeframe.day: (timedelta(days=1), timedelta(hours=1)),
    MetricsTimeframe.week: (timedelta(days=7), timedelta(days=1)),
    MetricsTimeframe.month: (timedelta(days=30), timedelta(days=1)),
}

TOP_OFFENDERS_LIMIT = 10


class SecurityMonitoringService:
    """
    In-memory security event log with alerting and review workflow.

    Storage beyond process memory is optional: pass an ``audit_store`` with
    ``save_event``/``save_flag``/``save_alert`` to mirror every change.
    """

    def __init__(
        self,
        audit_store: Optional[Any] = None,
        clock: Callable[[], datetime] = utc_now,
        alert_thresholds: Optional[Dict[str, int]] = None
    ):
        self._events: "OrderedDict[str, SecurityEvent]" = OrderedDict()
        self._flagged: "OrderedDict[str, FlaggedSubmission]" = OrderedDict()
        self._alerts: "OrderedDict[str, SecurityAlert]" = OrderedDict()
        self._latest_alert_by_rule: Dict[str, str] = {}
        self._lock = threading.Lock()
        self.audit_store = audit_store
        self._clock = clock
        self.alert_thresholds = {**ALERT_THRESHOLDS, **(alert_thresholds or {})}

    # ============================================================
    # EVENT LOGGING
    # ============================================================

    def log_security_event(
        self,
        event_type: Union[SecurityEventType, str],
        severity: Union[Severity, str],
        user_id: str,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
        challenge_id: Optional[str] = None,
        submission_id: Optional[str] = None
    ) -> str:
        """
        Append a security event and re-check alert thresholds.

        Unrecognized types are stored verbatim; unrecognized severities
        fall back to medium. Malformed metadata is kept as its repr.
        Returns the new event id.
        """
        fields = dict(
            type=self._coerce_event_type(event_type),
            severity=self._coerce_severity(severity),
            user_id=str(user_id),
            description=str(description),
            metadata=self._as_metadata(metadata),
            challenge_id=self._optional_str(challenge_id),
            submission_id=self._optional_str(submission_id)
        )
        try:
            event = SecurityEvent(timestamp=self._clock(), **fields)
        except Exception as e:
            logger.error(f"Error building security event for user {user_id}: {e}")
            event = SecurityEvent(
                timestamp=utc_now(),
                **{**fields, "metadata": {"raw_metadata": repr(fields["metadata"])}}
            )

        with self._lock:
            self._events[event.id] = event

        level = logging.WARNING if SEVERITY_ORDER[event.severity] >= 3 else logging.INFO
        logger.log(
            level,
            f"[SECURITY] {event.severity.value.upper()}: {event.type_value} - {event.description} "
            f"(user={event.user_id}, challenge={event.challenge_id}, submission={event.submission_id})"
        )

        self._persist("save_event", event)
        self._check_alert_thresholds()
        return event.id

    def log_validation_failure(
        self,
        user_id: str,
        challenge_id: Optional[str],
        submission_id: Optional[str],
        validation_result: ValidationResult
    ) -> List[str]:
        """Log one event per validation error, typed through ERROR_CODE_EVENTS."""
        event_ids = []
        for error in validation_result.errors:
            event_type, severity = ERROR_CODE_EVENTS.get(error.code, DEFAULT_ERROR_EVENT)
            event_ids.append(self.log_security_event(
                event_type,
                severity,
                user_id,
                error.message,
                {
                    "error_code": error.code,
                    "error_field": error.field,
                    "validation_context": "submission_validation",
                },
                challenge_id,
                submission_id
            ))
        return event_ids

    def log_fraud_detection(
        self,
        user_id: str,
        challenge_id: Optional[str],
        submission_id: Optional[str],
        fraud_result: FraudDetectionResult
    ) -> List[str]:
        """
        Log a FRAUD_DETECTED event for any non-low result, plus one specific
        event per matched signal.
        """
        event_ids = []
        if fraud_result.fraud_risk == FraudRisk.low:
            return event_ids

        event_ids.append(self.log_security_event(
            SecurityEventType.FRAUD_DETECTED,
            Severity.high if fraud_result.fraud_risk == FraudRisk.high else Severity.medium,
            user_id,
            f"Fraud detection: {', '.join(fraud_result.reasons)}",
            {
                "fraud_risk": fraud_result.fraud_risk.value,
                "confidence": fraud_result.confidence,
                "recommendation": fraud_result.recommended_action.value,
                "reasons": list(fraud_result.reasons),
            },
            challenge_id,
            submission_id
        ))

        for event_type, severity, reason in self._specific_fraud_events(fraud_result):
            event_ids.append(self.log_security_event(
                event_type,
                severity,
                user_id,
                reason,
                {"fraud_score": fraud_result.confidence},
                challenge_id,
                submission_id
            ))
        return event_ids

    def _specific_fraud_events(
        self,
        fraud_result: FraudDetectionResult
    ) -> List[Tuple[SecurityEventType, Severity, str]]:
        matched = []
        if fraud_result.signals:
            for signal in fraud_result.signals:
                if signal.type in SIGNAL_EVENTS:
                    event_type, severity = SIGNAL_EVENTS[signal.type]
                    matched.append((event_type, severity, signal.reason))
            return matched

        for reason in fraud_result.reasons:
            lowered = reason.lower()
            for keyword, event_type, severity in REASON_KEYWORD_EVENTS:
                if keyword in lowered:
                    matched.append((event_type, severity, reason))
        return matched

    def resolve_security_event(
        self,
        event_id: str,
        resolved_by: str,
        resolution_notes: Optional[str] = None
    ) -> bool:
        with self._lock:
            event = self._events.get(event_id)
            if not event:
                return False
            event.resolved = True
            event.resolved_by = resolved_by
            event.resolved_at = self._clock()
            event.resolution_notes = resolution_notes

        logger.info(f"[SECURITY] Event {event_id} resolved by {resolved_by}")
        self._persist("save_event", event)
        return True

    def get_user_security_events(self, user_id: str, limit: int = 20) -> List[SecurityEvent]:
        """Events for a user, newest first."""
        with self._lock:
            indexed = [
                (index, event) for index, event in enumerate(self._events.values())
                if event.user_id == user_id
            ]
        indexed.sort(key=lambda item: (item[1].timestamp, item[0]), reverse=True)
        return [event for _, event in indexed[:limit]]

    def get_event(self, event_id: str) -> Optional[SecurityEvent]:
        with self._lock:
            return self._events.get(event_id)

    # ============================================================
    # REVIEW WORKFLOW
    # ============================================================

    def flag_submission_for_review(
        self,
        submission_id: str,
        user_id: str,
        challenge_id: Optional[str],
        reason: str,
        severity: Union[Severity, str],
        indicators: Optional[List[str]] = None,
        score: float = 0.0,
        metadata: Optional[Dict[str, Any]] = None
    ) -> FlaggedSubmission:
        """
        Queue a submission for human review and log a SUSPICIOUS_PATTERN event.

        Re-flagging an open entry refreshes its evidence and keeps its review
        trail. Approved and rejected entries are final and returned unchanged.
        """
        score = self._as_score(score)
        flagged = FlaggedSubmission(
            submission_id=str(submission_id),
            user_id=str(user_id),
            challenge_id=self._optional_str(challenge_id),
            flagged_at=self._clock(),
            flag_reason=str(reason),
            severity=self._coerce_severity(severity),
            indicators=self._as_indicators(indicators),
            score=score,
            metadata=self._as_metadata(metadata)
        )

        with self._lock:
            existing = self._flagged.get(flagged.submission_id)
            if existing is not None and not REVIEW_TRANSITIONS[existing.review_status]:
                logger.warning(
                    f"Submission {submission_id} already reviewed "
                    f"({existing.review_status.value}), ignoring re-flag"
                )
                return existing
            if existing is not None:
                flagged.review_status = existing.review_status
                flagged.reviewed_by = existing.reviewed_by
                flagged.reviewed_at = existing.reviewed_at
                flagged.review_notes = existing.review_notes
                flagged.review_history = existing.review_history
            self._flagged[flagged.submission_id] = flagged

        self._persist("save_flag", flagged)
        self.log_security_event(
            SecurityEventType.SUSPICIOUS_PATTERN,
            flagged.severity,
            flagged.user_id,
            f"Submission flagged for review: {flagged.flag_reason}",
            {
                "flag_reason": flagged.flag_reason,
                "indicators": flagged.indicators,
                "score": score,
                **flagged.metadata,
            },
            flagged.challenge_id,
            flagged.submission_id
        )
        return flagged

    def review_flagged_submission(
        self,
        submission_id: str,
        reviewer_id: str,
        decision: Union[ReviewStatus, str],
        notes: Optional[str] = None
    ) -> bool:
        """
        Apply a reviewer decision.

        pending -> approved | rejected | escalated
        escalated -> approved | rejected

        Returns False for unknown submissions and forbidden transitions.
        """
        try:
            decision = ReviewStatus(decision)
        except ValueError:
            logger.warning(f"Invalid review decision '{decision}' for {submission_id}")
            return False

        with self._lock:
            flagged = self._flagged.get(submission_id)
            if not flagged:
                logger.warning(f"Flagged submission {submission_id} not found")
                return False

            previous_status = flagged.review_status
            if decision not in REVIEW_TRANSITIONS[previous_status]:
                logger.warning(
                    f"Review transition {previous_status.value} -> {decision.value} "
                    f"not allowed for {submission_id}"
                )
                return False

            reviewed_at = self._clock()
            flagged.review_status = decision
            flagged.reviewed_by = reviewer_id
            flagged.reviewed_at = reviewed_at
            flagged.review_notes = notes
            flagged.review_history.append(ReviewRecord(
                reviewer_id=reviewer_id,
                decision=decision,
                notes=notes,
                reviewed_at=reviewed_at
            ))

        self._persist("save_flag", flagged)
        self.log_security_event(
            SecurityEventType.SUSPICIOUS_PATTERN,
            Severity.low,
            flagged.user_id,
            f"Flagged submission reviewed: {decision.value}",
            {
                "reviewer_id": reviewer_id,
                "decision": decision.value,
                "previous_status": previous_status.value,
                "review_notes": notes,
                "original_flag_reason": flagged.flag_reason,
            },
            flagged.challenge_id,
            submission_id
        )
        logger.info(f"[SECURITY] Submission {submission_id} reviewed by {reviewer_id}: {decision.value}")
        return True

    def get_flagged_submission(self, submission_id: str) -> Optional[FlaggedSubmission]:
        with self._lock:
            return self._flagged.get(submission_id)

    def get_flagged_submissions(
        self,
        status: Union[ReviewStatus, str] = ReviewStatus.pending,
        limit: int = 50
    ) -> List[FlaggedSubmission]:
        """Flagged submissions filtered by review status ('all' for every status), newest first."""
        with self._lock:
            flagged = list(self._flagged.values())

        if status != "all":
            wanted = ReviewStatus(status)
            flagged = [f for f in flagged if f.review_status == wanted]

        flagged.reverse()
        flagged.sort(key=lambda f: f.flagged_at, reverse=True)
        return flagged[:limit]

    # ============================================================
    # METRICS
    # ============================================================

    def get_security_metrics(
        self,
        timeframe: Union[MetricsTimeframe, str] = MetricsTimeframe.day
    ) -> SecurityMetrics:
        """Rolling metrics recomputed from the event set for the given window."""
        timeframe = MetricsTimeframe(timeframe)
        window, bucket = TIMEFRAME_WINDOWS[timeframe]
        now = self._clock()
        start = now - window

        with self._lock:
            events = [e for e in self._events.values() if e.timestamp >= start]
            pending_review = sum(
                1 for f in self._flagged.values()
                if f.review_status in (ReviewStatus.pending, ReviewStatus.escalated)
            )

        events_by_type: Dict[str, int] = {}
        events_by_severity = {s.value: 0 for s in Severity}
        users: Dict[str, Dict[str, Any]] = {}
        resolution_hours = []

        for index, event in enumerate(events):
            events_by_type[event.type_value] = events_by_type.get(event.type_value, 0) + 1
            events_by_severity[event.severity.value] += 1

            stats = users.setdefault(event.user_id, {
                "count": 0,
                "first_index": index,
                "first": event.timestamp,
                "last": event.timestamp,
            })
            stats["count"] += 1
            stats["first"] = min(stats["first"], event.timestamp)
            stats["last"] = max(stats["last"], event.timestamp)

            if event.resolved and event.resolved_at:
                resolution_hours.append(
                    (event.resolved_at - event.timestamp).total_seconds() / 3600
                )

        # Count desc; ties go to whoever offended first
        ranked = sorted(
            users.items(),
            key=lambda item: (-item[1]["count"], item[1]["first"], item[1]["first_index"])
        )
        top_offending_users = [
            OffendingUser(
                user_id=user_id,
                event_count=stats["count"],
                first_event_at=stats["first"],
                last_event_at=stats["last"]
            )
            for user_id, stats in ranked[:TOP_OFFENDERS_LIMIT]
        ]

        return SecurityMetrics(
            timeframe=timeframe,
            total_events=len(events),
            events_by_type=events_by_type,
            events_by_severity=events_by_severity,
            unique_users_affected=len(users),
            top_offending_users=top_offending_users,
            recent_trends=self._build_trends(events, start, now, bucket),
            resolved_events=sum(1 for e in events if e.resolved),
            pending_review=pending_review,
            average_resolution_time=(
                sum(resolution_hours) / len(resolution_hours) if resolution_hours else 0.0
            )
        )

    def _build_trends(
        self,
        events: List[SecurityEvent],
        start: datetime,
        end: datetime,
        bucket: timedelta
    ) -> List[TrendPoint]:
        fraud_types = {SecurityEventType.FRAUD_DETECTED, SecurityEventType.GPS_SPOOFING}
        bucket_count = max(1, int((end - start) / bucket))
        counts = [[0, 0] for _ in range(bucket_count)]

        for event in events:
            slot = min(int((event.timestamp - start) / bucket), bucket_count - 1)
            counts[slot][0] += 1
            if event.type in fraud_types:
                counts[slot][1] += 1

        return [
            TrendPoint(
                period=(start + bucket * i).isoformat(),
                event_count=event_count,
                fraud_attempts=fraud_attempts
            )
            for i, (event_count, fraud_attempts) in enumerate(counts)
        ]

    # ============================================================
    # ALERTING
    # ============================================================

    def _check_alert_thresholds(self) -> None:
        """Re-evaluate alert rules; failures never reach the caller."""
        try:
            now = self._clock()
            with self._lock:
                events = list(self._events.values())
            for candidate in self._alert_candidates(events, now):
                self._raise_or_refresh_alert(**candidate)
        except Exception as e:
            logger.error(f"Error evaluating security alerts: {e}")

    def _alert_candidates(self, events: List[SecurityEvent], now: datetime) -> List[Dict[str, Any]]:
        hour_ago = now - timedelta(hours=1)
        day_ago = now - timedelta(days=1)
        last_hour = [e for e in events if e.timestamp >= hour_ago]
        candidates = []

        serious_fraud = [
            e for e in last_hour
            if e.type == SecurityEventType.FRAUD_DETECTED
            and SEVERITY_ORDER[e.severity] >= SEVERITY_ORDER[Severity.high]
        ]
        if len(serious_fraud) >= self.alert_thresholds["fraud_events_per_hour"]:
            users = {e.user_id for e in serious_fraud}
            widespread = len(users) >= self.alert_thresholds["unique_fraud_users_per_day"]
            candidates.append({
                "rule": "fraud_spike",
                "alert_type": AlertType.threshold_exceeded,
                "title": "High Fraud Activity Detected",
                "description": (
                    f"{len(serious_fraud)} high-severity fraud events from "
                    f"{len(users)} users in the last hour"
                ),
                "severity": Severity.critical if widespread else Severity.high,
                "related": [e.id for e in serious_fraud],
                "suggested_actions": [
                    "Review flagged submissions",
                    "Investigate user patterns",
                    "Consider temporary restrictions",
                ],
            })

        daily_fraud = [
            e for e in events
            if e.timestamp >= day_ago and e.type == SecurityEventType.FRAUD_DETECTED
        ]
        fraud_users = {e.user_id for e in daily_fraud}
        if len(fraud_users) >= self.alert_thresholds["unique_fraud_users_per_day"]:
            candidates.append({
                "rule": "widespread_fraud",
                "alert_type": AlertType.pattern_detected,
                "title": "Widespread Fraud Activity",
                "description": f"{len(fraud_users)} unique users involved in fraud attempts in the last 24 hours",
                "severity": Severity.critical,
                "related": [e.id for e in daily_fraud],
                "suggested_actions": [
                    "Investigate for coordinated attack",
                    "Review user registration patterns",
                    "Implement additional verification",
                ],
            })

        spoofing = [e for e in last_hour if e.type == SecurityEventType.GPS_SPOOFING]
        if len(spoofing) >= self.alert_thresholds["gps_spoofing_per_hour"]:
            candidates.append({
                "rule": "gps_spoofing_spike",
                "alert_type": AlertType.threshold_exceeded,
                "title": "GPS Spoofing Spike Detected",
                "description": f"{len(spoofing)} GPS spoofing events detected in the last hour",
                "severity": Severity.high,
                "related": [e.id for e in spoofing],
                "suggested_actions": [
                    "Review GPS validation logic",
                    "Check for coordinated attacks",
                    "Update fraud detection rules",
                ],
            })

        rate_limited = [e for e in last_hour if e.type == SecurityEventType.RATE_LIMIT_EXCEEDED]
        if len(rate_limited) >= self.alert_thresholds["rate_limit_per_hour"]:
            candidates.append({
                "rule": "rate_limit_spike",
                "alert_type": AlertType.threshold_exceeded,
                "title": "Rate Limit Violations Spike",
                "description": f"{len(rate_limited)} rate limit violations in the last hour",
                "severity": Severity.medium,
                "related": [e.id for e in rate_limited],
                "suggested_actions": [
                    "Check for scripted clients",
                    "Review rate limit configuration",
                ],
            })

        critical = [e for e in last_hour if e.severity == Severity.critical]
        if critical:
            candidates.append({
                "rule": "critical_event",
                "alert_type": AlertType.critical_event,
                "title": "Critical Security Event",
                "description": f"{len(critical)} critical security events in the last hour",
                "severity": Severity.critical,
                "related": [e.id for e in critical],
                "suggested_actions": ["Immediate investigation required"],
            })

        return candidates

    def _raise_or_refresh_alert(
        self,
        rule: str,
        alert_type: AlertType,
        title: str,
        description: str,
        severity: Severity,
        related: List[str],
        suggested_actions: List[str]
    ) -> None:
        with self._lock:
            latest_id = self._latest_alert_by_rule.get(rule)
            latest = self._alerts.get(latest_id) if latest_id else None

            if latest and not latest.acknowledged:
                known = set(latest.related_events)
                latest.related_events.extend(e for e in related if e not in known)
                latest.description = description
                if SEVERITY_ORDER[severity] > SEVERITY_ORDER[latest.severity]:
                    latest.severity = severity
                alert = latest
                created = False
            else:
                if latest:
                    covered = set(latest.related_events)
                    if all(e in covered for e in related):
                        return
                alert = SecurityAlert(
                    rule=rule,
                    type=alert_type,
                    title=title,
                    description=description,
                    severity=severity,
                    triggered_at=self._clock(),
                    related_events=list(related),
                    action_required=True,
                    suggested_actions=suggested_actions
                )
                self._alerts[alert.id] = alert
                self._latest_alert_by_rule[rule] = alert.id
                created = True

        if created:
            logger.warning(f"[SECURITY ALERT] {severity.value.upper()}: {title} - {description}")
        self._persist("save_alert", alert)

    def get_active_alerts(self) -> List[SecurityAlert]:
        """Unacknowledged alerts, most severe first, then newest."""
        with self._lock:
            active = [a for a in self._alerts.values() if not a.acknowledged]
        return sorted(
            active,
            key=lambda a: (SEVERITY_ORDER[a.severity], a.triggered_at),
            reverse=True
        )

    def get_alert(self, alert_id: str) -> Optional[SecurityAlert]:
        with self._lock:
            return self._alerts.get(alert_id)

    def acknowledge_alert(self, alert_id: str, acknowledged_by: str) -> bool:
        """Idempotent: repeated acknowledgments succeed and keep the first acknowledger."""
        with self._lock:
            alert = self._alerts.get(alert_id)
            if not alert:
                return False
            if alert.acknowledged:
                return True
            alert.acknowledged = True
            alert.acknowledged_by = acknowledged_by
            alert.acknowledged_at = self._clock()

        logger.info(f"[SECURITY] Alert {alert_id} acknowledged by {acknowledged_by}")
        self._persist("save_alert", alert)
        return True

    # ============================================================
    # HELPERS
    # ============================================================

    @staticmethod
    def _coerce_event_type(value: Union[SecurityEventType, str]) -> Union[SecurityEventType, str]:
        try:
            return SecurityEventType(value)
        except ValueError:
            logger.warning(f"Unrecognized security event type '{value}', storing as-is")
            return str(value)

    @staticmethod
    def _coerce_severity(value: Union[Severity, str]) -> Severity:
        try:
            return Severity(str(getattr(value, "value", value)).lower())
        except ValueError:
            logger.warning(f"Unrecognized severity '{value}', defaulting to medium")
            return Severity.medium

    @staticmethod
    def _as_metadata(metadata: Any) -> Dict[str, Any]:
        if metadata is None:
            return {}
        if isinstance(metadata, Mapping):
            return {str(key): value for key, value in metadata.items()}
        logger.warning(f"Non-mapping security metadata {metadata!r}, storing its repr")
        return {"raw_metadata": repr(metadata)}

    @staticmethod
    def _optional_str(value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @staticmethod
    def _as_score(value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid flag score {value!r}, defaulting to 0.0")
            return 0.0

    @staticmethod
    def _as_indicators(value: Any) -> List[str]:
        if not value:
            return []
        if isinstance(value, str):
            return [value]
        try:
            return [str(item) for item in value]
        except TypeError:
            return [str(value)]

    def _persist(self, method: str, record: Any) -> None:
        if self.audit_store is None:
            return
        try:
            getattr(self.audit_store, method)(record)
        except Exception as e:
            logger.error(f"Error persisting security record via {method}: {e}")


# Singleton instance
security_monitoring_service = SecurityMonitoringService()
