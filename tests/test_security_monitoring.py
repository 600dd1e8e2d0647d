"""
Tests for security event logging, metrics, alerting and the review workflow
"""
import threading

import pytest

from hunt_guard.schemas import (
    FraudDetectionResult, FraudRisk, FraudSignal, FraudSignalType, RecommendedAction,
    SignalStrength, ValidationIssue, ValidationResult
)
from hunt_guard.schemas.security import (
    MetricsTimeframe, ReviewStatus, SecurityEventType, Severity
)
from hunt_guard.services.security_monitoring_service import SecurityMonitoringService


def fraud_result(risk, reasons, signals=None):
    return FraudDetectionResult(
        is_valid=risk != FraudRisk.high,
        fraud_risk=risk,
        reasons=reasons,
        signals=signals or [],
        confidence=0.9 if risk == FraudRisk.high else 0.4,
        recommended_action=RecommendedAction.reject if risk == FraudRisk.high else RecommendedAction.review
    )


def log_fraud(monitor, user_id, severity=Severity.high):
    return monitor.log_security_event(
        SecurityEventType.FRAUD_DETECTED, severity, user_id, "Fraud detection: GPS spoofing"
    )


class TestEventLogging:

    def test_ids_are_prefixed(self, monitor):
        event_id = monitor.log_security_event("GPS_SPOOFING", "high", "u1", "spoofed fix")
        assert event_id.startswith("sec_")
        assert monitor.get_event(event_id).type == SecurityEventType.GPS_SPOOFING

    def test_concurrent_logging_yields_distinct_ids(self, monitor):
        ids = []
        lock = threading.Lock()

        def worker(n):
            event_id = monitor.log_security_event("VALIDATION_FAILURE", "low", f"user_{n}", "failed")
            with lock:
                ids.append(event_id)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(ids) == 10
        assert len(set(ids)) == 10

    def test_unknown_type_is_kept_verbatim(self, monitor):
        event_id = monitor.log_security_event("BRAND_NEW_THING", "low", "u1", "novel")
        event = monitor.get_event(event_id)
        assert event.type == "BRAND_NEW_THING"
        assert event.type_value == "BRAND_NEW_THING"

    def test_unknown_severity_defaults_to_medium(self, monitor):
        event_id = monitor.log_security_event("VALIDATION_FAILURE", "apocalyptic", "u1", "x")
        assert monitor.get_event(event_id).severity == Severity.medium

    def test_user_events_newest_first(self, monitor, clock):
        first = monitor.log_security_event("VALIDATION_FAILURE", "low", "u1", "first")
        clock.advance(minutes=5)
        second = monitor.log_security_event("VALIDATION_FAILURE", "low", "u1", "second")
        monitor.log_security_event("VALIDATION_FAILURE", "low", "u2", "other user")

        events = monitor.get_user_security_events("u1")
        assert [e.id for e in events] == [second, first]
        assert [e.id for e in monitor.get_user_security_events("u1", limit=1)] == [second]

    def test_resolve_event(self, monitor, clock):
        event_id = monitor.log_security_event("VALIDATION_FAILURE", "low", "u1", "x")
        clock.advance(hours=2)

        assert monitor.resolve_security_event(event_id, "admin", "false positive")
        event = monitor.get_event(event_id)
        assert event.resolved
        assert event.resolved_by == "admin"
        assert event.resolution_notes == "false positive"

    def test_resolve_unknown_event(self, monitor):
        assert not monitor.resolve_security_event("sec_missing", "admin")


class TestValidationFailureMapping:

    def test_codes_map_to_event_types(self, monitor):
        result = ValidationResult(is_valid=False, errors=[
            ValidationIssue(field="gpsCoordinates", message="too far", code="LOCATION_TOO_FAR"),
            ValidationIssue(field="submission", message="slow down", code="RATE_LIMIT_EXCEEDED"),
            ValidationIssue(field="imageUrl", message="bad photo", code="INVALID_PHOTO_DATA"),
            ValidationIssue(field="answer", message="wrong", code="INCORRECT_ANSWER"),
        ])
        ids = monitor.log_validation_failure("u1", "c1", "s1", result)

        events = [monitor.get_event(i) for i in ids]
        assert [(e.type, e.severity) for e in events] == [
            (SecurityEventType.LOCATION_VERIFICATION_FAILED, Severity.low),
            (SecurityEventType.RATE_LIMIT_EXCEEDED, Severity.medium),
            (SecurityEventType.PHOTO_VALIDATION_FAILED, Severity.low),
            (SecurityEventType.VALIDATION_FAILURE, Severity.low),
        ]
        assert events[0].metadata["error_code"] == "LOCATION_TOO_FAR"
        assert events[0].challenge_id == "c1"
        assert events[0].submission_id == "s1"


class TestFraudLogging:

    def test_low_risk_logs_nothing(self, monitor):
        assert monitor.log_fraud_detection("u1", "c1", "s1", fraud_result(FraudRisk.low, [])) == []

    def test_structured_signals_drive_specific_events(self, monitor):
        signal = FraudSignal(
            type=FraudSignalType.IMPOSSIBLE_TRAVEL,
            strength=SignalStrength.strong,
            weight=0.95,
            reason="Impossible travel speed detected"
        )
        ids = monitor.log_fraud_detection(
            "u1", "c1", "s1", fraud_result(FraudRisk.high, [signal.reason], [signal])
        )
        events = [monitor.get_event(i) for i in ids]
        assert [e.type for e in events] == [
            SecurityEventType.FRAUD_DETECTED, SecurityEventType.IMPOSSIBLE_TRAVEL
        ]
        assert events[0].severity == Severity.high

    def test_poor_accuracy_signal_logs_low_severity_event(self, monitor):
        signal = FraudSignal(
            type=FraudSignalType.POOR_GPS_ACCURACY,
            strength=SignalStrength.weak,
            weight=0.4,
            reason="Poor GPS accuracy"
        )
        ids = monitor.log_fraud_detection(
            "u1", "c1", "s1", fraud_result(FraudRisk.medium, [signal.reason], [signal])
        )
        specific = monitor.get_event(ids[1])
        assert specific.type == SecurityEventType.POOR_GPS_ACCURACY
        assert specific.severity == Severity.low

    def test_reason_keywords_used_without_signals(self, monitor):
        reasons = [
            "GPS Spoofing detected: exact match with challenge coordinates",
            "Automation pattern detected: regular submission intervals",
        ]
        ids = monitor.log_fraud_detection("u1", "c1", "s1", fraud_result(FraudRisk.medium, reasons))
        events = [monitor.get_event(i) for i in ids]
        assert events[0].type == SecurityEventType.FRAUD_DETECTED
        assert events[0].severity == Severity.medium
        assert [e.type for e in events[1:]] == [
            SecurityEventType.GPS_SPOOFING, SecurityEventType.AUTOMATED_BEHAVIOR
        ]


class TestReviewWorkflow:

    def flag(self, monitor, submission_id="s1"):
        return monitor.flag_submission_for_review(
            submission_id, "u1", "c1", "Medium fraud risk", "medium",
            indicators=["AUTOMATED_BEHAVIOR"], score=0.45
        )

    def test_flag_creates_pending_entry_and_event(self, monitor):
        flagged = self.flag(monitor)
        assert flagged.review_status == ReviewStatus.pending
        events = monitor.get_user_security_events("u1")
        assert events[0].type == SecurityEventType.SUSPICIOUS_PATTERN

    @pytest.mark.parametrize("decision", ["approved", "rejected", "escalated"])
    def test_pending_transitions(self, monitor, decision):
        self.flag(monitor)
        assert monitor.review_flagged_submission("s1", "reviewer", decision, "checked")
        flagged = monitor.get_flagged_submission("s1")
        assert flagged.review_status == ReviewStatus(decision)
        assert flagged.reviewed_by == "reviewer"
        assert flagged.review_notes == "checked"
        assert len(flagged.review_history) == 1

    def test_escalated_can_be_decided(self, monitor):
        self.flag(monitor)
        monitor.review_flagged_submission("s1", "tier1", "escalated")
        assert monitor.review_flagged_submission("s1", "tier2", "rejected")
        flagged = monitor.get_flagged_submission("s1")
        assert [r.decision for r in flagged.review_history] == [
            ReviewStatus.escalated, ReviewStatus.rejected
        ]

    @pytest.mark.parametrize("terminal", ["approved", "rejected"])
    def test_terminal_states_are_final(self, monitor, terminal):
        self.flag(monitor)
        monitor.review_flagged_submission("s1", "reviewer", terminal)
        assert not monitor.review_flagged_submission("s1", "reviewer", "escalated")
        assert monitor.get_flagged_submission("s1").review_status == ReviewStatus(terminal)

    @pytest.mark.parametrize("terminal", ["approved", "rejected"])
    def test_reflagging_a_decided_submission_keeps_the_decision(self, monitor, terminal):
        self.flag(monitor)
        monitor.review_flagged_submission("s1", "reviewer", terminal)

        returned = self.flag(monitor)

        assert returned.review_status == ReviewStatus(terminal)
        flagged = monitor.get_flagged_submission("s1")
        assert flagged.review_status == ReviewStatus(terminal)
        assert len(flagged.review_history) == 1
        assert monitor.get_flagged_submissions() == []

    def test_reflagging_an_escalated_submission_keeps_the_trail(self, monitor, clock):
        self.flag(monitor)
        monitor.review_flagged_submission("s1", "tier1", "escalated")
        clock.advance(minutes=1)

        monitor.flag_submission_for_review("s1", "u1", "c1", "Repeated GPS metadata", "high")

        flagged = monitor.get_flagged_submission("s1")
        assert flagged.review_status == ReviewStatus.escalated
        assert flagged.flag_reason == "Repeated GPS metadata"
        assert [r.decision for r in flagged.review_history] == [ReviewStatus.escalated]

    def test_escalated_cannot_escalate_again(self, monitor):
        self.flag(monitor)
        monitor.review_flagged_submission("s1", "tier1", "escalated")
        assert not monitor.review_flagged_submission("s1", "tier2", "escalated")

    def test_unknown_submission_or_decision(self, monitor):
        self.flag(monitor)
        assert not monitor.review_flagged_submission("missing", "reviewer", "approved")
        assert not monitor.review_flagged_submission("s1", "reviewer", "maybe")
        assert not monitor.review_flagged_submission("s1", "reviewer", "pending")

    def test_review_logs_low_severity_event(self, monitor, clock):
        self.flag(monitor)
        clock.advance(minutes=1)
        monitor.review_flagged_submission("s1", "reviewer", "approved")
        latest = monitor.get_user_security_events("u1")[0]
        assert latest.severity == Severity.low
        assert latest.metadata["decision"] == "approved"

    def test_get_flagged_submissions_filters_by_status(self, monitor, clock):
        self.flag(monitor, "s1")
        clock.advance(minutes=1)
        self.flag(monitor, "s2")
        monitor.review_flagged_submission("s1", "reviewer", "approved")

        assert [f.submission_id for f in monitor.get_flagged_submissions()] == ["s2"]
        assert [f.submission_id for f in monitor.get_flagged_submissions("approved")] == ["s1"]
        assert [f.submission_id for f in monitor.get_flagged_submissions("all")] == ["s2", "s1"]


class TestMetrics:

    def test_top_offending_users_ranked_by_count(self, monitor):
        for user, count in [("a", 5), ("b", 3), ("c", 1), ("d", 1), ("e", 4)]:
            for _ in range(count):
                monitor.log_security_event("VALIDATION_FAILURE", "low", user, "x")

        metrics = monitor.get_security_metrics("day")

        assert [u.event_count for u in metrics.top_offending_users] == [5, 4, 3, 1, 1]
        assert [u.user_id for u in metrics.top_offending_users] == ["a", "e", "b", "c", "d"]
        assert metrics.unique_users_affected == 5
        assert metrics.total_events == 14

    def test_counts_by_type_and_severity(self, monitor):
        log_fraud(monitor, "u1")
        monitor.log_security_event("RATE_LIMIT_EXCEEDED", "medium", "u2", "x")
        metrics = monitor.get_security_metrics(MetricsTimeframe.hour)

        assert metrics.events_by_type == {"FRAUD_DETECTED": 1, "RATE_LIMIT_EXCEEDED": 1}
        assert metrics.events_by_severity["high"] == 1
        assert metrics.events_by_severity["medium"] == 1
        assert metrics.events_by_severity["critical"] == 0

    def test_window_excludes_old_events(self, monitor, clock):
        monitor.log_security_event("VALIDATION_FAILURE", "low", "u1", "old")
        clock.advance(hours=2)
        monitor.log_security_event("VALIDATION_FAILURE", "low", "u1", "new")

        assert monitor.get_security_metrics("hour").total_events == 1
        assert monitor.get_security_metrics("day").total_events == 2

    @pytest.mark.parametrize("timeframe,buckets", [("hour", 6), ("day", 24), ("week", 7), ("month", 30)])
    def test_trend_buckets(self, monitor, timeframe, buckets):
        log_fraud(monitor, "u1")
        trends = monitor.get_security_metrics(timeframe).recent_trends
        assert len(trends) == buckets
        assert sum(t.event_count for t in trends) == 1
        assert trends[-1].fraud_attempts == 1

    def test_resolution_stats(self, monitor, clock):
        event_id = monitor.log_security_event("VALIDATION_FAILURE", "low", "u1", "x")
        clock.advance(hours=3)
        monitor.resolve_security_event(event_id, "admin")

        metrics = monitor.get_security_metrics("day")
        assert metrics.resolved_events == 1
        assert metrics.average_resolution_time == pytest.approx(3.0)

    def test_pending_review_counts_open_flags(self, monitor):
        monitor.flag_submission_for_review("s1", "u1", "c1", "r", "medium")
        monitor.flag_submission_for_review("s2", "u1", "c1", "r", "medium")
        monitor.review_flagged_submission("s2", "reviewer", "approved")
        assert monitor.get_security_metrics("day").pending_review == 1


class TestAlerting:

    def test_single_fraud_event_raises_nothing(self, monitor):
        log_fraud(monitor, "u1")
        assert monitor.get_active_alerts() == []

    def test_fraud_wave_raises_critical_alert(self, monitor):
        for n in range(12):
            log_fraud(monitor, f"user_{n}")

        alerts = monitor.get_active_alerts()
        assert alerts
        assert alerts[0].severity == Severity.critical
        assert {"fraud_spike", "widespread_fraud"} <= {a.rule for a in alerts}

    def test_fraud_spike_from_few_users_is_high(self, monitor):
        for n in range(10):
            log_fraud(monitor, f"user_{n % 2}")

        spike = [a for a in monitor.get_active_alerts() if a.rule == "fraud_spike"]
        assert len(spike) == 1
        assert spike[0].severity == Severity.high
        assert len(spike[0].related_events) == 10

    def test_open_alert_is_refreshed_not_duplicated(self, monitor):
        for n in range(15):
            log_fraud(monitor, f"user_{n}")

        spike = [a for a in monitor.get_active_alerts() if a.rule == "fraud_spike"]
        assert len(spike) == 1
        assert len(spike[0].related_events) == 15

    def test_gps_spoofing_spike(self, monitor):
        for n in range(5):
            monitor.log_security_event("GPS_SPOOFING", "high", "u1", "spoof")
        rules = {a.rule: a for a in monitor.get_active_alerts()}
        assert rules["gps_spoofing_spike"].severity == Severity.high

    def test_rate_limit_spike(self, monitor):
        for n in range(19):
            monitor.log_security_event("RATE_LIMIT_EXCEEDED", "medium", "u1", "x")
        assert monitor.get_active_alerts() == []
        monitor.log_security_event("RATE_LIMIT_EXCEEDED", "medium", "u1", "x")
        assert [a.rule for a in monitor.get_active_alerts()] == ["rate_limit_spike"]

    def test_critical_event_alert(self, monitor):
        monitor.log_security_event("SUSPICIOUS_PATTERN", "critical", "u1", "account takeover")
        alerts = monitor.get_active_alerts()
        assert [a.rule for a in alerts] == ["critical_event"]
        assert alerts[0].severity == Severity.critical

    def test_events_outside_hour_do_not_spike(self, monitor, clock):
        for n in range(6):
            log_fraud(monitor, "u1")
        clock.advance(hours=2)
        for n in range(6):
            log_fraud(monitor, "u1")
        assert [a for a in monitor.get_active_alerts() if a.rule == "fraud_spike"] == []

    def test_acknowledge_is_idempotent(self, monitor, clock):
        monitor.log_security_event("SUSPICIOUS_PATTERN", "critical", "u1", "x")
        alert = monitor.get_active_alerts()[0]

        assert monitor.acknowledge_alert(alert.id, "admin1")
        clock.advance(minutes=1)
        assert monitor.acknowledge_alert(alert.id, "admin2")

        acknowledged = monitor.get_alert(alert.id)
        assert acknowledged.acknowledged_by == "admin1"
        assert monitor.get_active_alerts() == []

    def test_concurrent_acknowledgments_all_succeed(self, monitor):
        monitor.log_security_event("SUSPICIOUS_PATTERN", "critical", "u1", "x")
        alert_id = monitor.get_active_alerts()[0].id
        results = []

        threads = [
            threading.Thread(target=lambda n=n: results.append(monitor.acknowledge_alert(alert_id, f"admin{n}")))
            for n in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == [True] * 8

    def test_acknowledge_unknown_alert(self, monitor):
        assert not monitor.acknowledge_alert("alert_missing", "admin")

    def test_acknowledged_alert_not_re_raised_for_covered_events(self, monitor):
        monitor.log_security_event("SUSPICIOUS_PATTERN", "critical", "u1", "x")
        alert = monitor.get_active_alerts()[0]
        monitor.acknowledge_alert(alert.id, "admin")

        monitor.log_security_event("VALIDATION_FAILURE", "low", "u2", "unrelated")
        assert monitor.get_active_alerts() == []

    def test_new_qualifying_event_after_acknowledgment_raises_new_alert(self, monitor):
        monitor.log_security_event("SUSPICIOUS_PATTERN", "critical", "u1", "x")
        first = monitor.get_active_alerts()[0]
        monitor.acknowledge_alert(first.id, "admin")

        monitor.log_security_event("SUSPICIOUS_PATTERN", "critical", "u3", "again")
        alerts = monitor.get_active_alerts()
        assert len(alerts) == 1
        assert alerts[0].id != first.id

    def test_resolving_events_does_not_close_alerts(self, monitor):
        event_id = monitor.log_security_event("SUSPICIOUS_PATTERN", "critical", "u1", "x")
        monitor.resolve_security_event(event_id, "admin")
        assert len(monitor.get_active_alerts()) == 1

    def test_custom_alert_thresholds(self, clock):
        monitor = SecurityMonitoringService(clock=clock, alert_thresholds={"gps_spoofing_per_hour": 2})
        monitor.log_security_event("GPS_SPOOFING", "high", "u1", "x")
        monitor.log_security_event("GPS_SPOOFING", "high", "u1", "x")
        assert [a.rule for a in monitor.get_active_alerts()] == ["gps_spoofing_spike"]


class TestBestEffort:

    def test_alert_evaluation_failure_is_swallowed(self, monitor):
        def boom(events, now):
            raise RuntimeError("rule engine broke")

        monitor._alert_candidates = boom
        assert monitor.log_security_event("VALIDATION_FAILURE", "low", "u1", "x").startswith("sec_")

    def test_non_mapping_metadata_is_kept_as_repr(self, monitor):
        event_id = monitor.log_security_event("VALIDATION_FAILURE", "low", "u1", "d", metadata=["oops"])
        assert event_id.startswith("sec_")
        assert monitor.get_event(event_id).metadata == {"raw_metadata": "['oops']"}

    def test_non_string_ids_are_stringified(self, monitor):
        event_id = monitor.log_security_event(
            "VALIDATION_FAILURE", "low", 42, "d", challenge_id=7, submission_id=8
        )
        event = monitor.get_event(event_id)
        assert (event.user_id, event.challenge_id, event.submission_id) == ("42", "7", "8")

    def test_flag_with_bad_score_and_metadata(self, monitor):
        flagged = monitor.flag_submission_for_review(
            "s1", "u1", "c1", "odd input", "medium", indicators="AUTOMATED_BEHAVIOR",
            score=None, metadata="not a dict"
        )
        assert flagged.score == 0.0
        assert flagged.indicators == ["AUTOMATED_BEHAVIOR"]
        assert flagged.metadata == {"raw_metadata": "'not a dict'"}

    def test_store_failure_is_swallowed(self, clock):
        class BrokenStore:
            def save_event(self, event):
                raise RuntimeError("db down")

        monitor = SecurityMonitoringService(audit_store=BrokenStore(), clock=clock)
        event_id = monitor.log_security_event("VALIDATION_FAILURE", "low", "u1", "x")
        assert monitor.get_event(event_id) is not None
