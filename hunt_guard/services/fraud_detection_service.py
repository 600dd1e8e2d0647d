"""
Fraud Detection - GPS spoofing and behavioral heuristics

Scores a proof-of-visit submission against the user's history:
- GPS spoofing (exact challenge coordinates, known default coordinates)
- Poor GPS accuracy
- Impossible travel between consecutive fixes
- Rapid-fire submissions and mostly sub-minute intervals
- Automation patterns (clockwork intervals, repeated GPS metadata)
- Proof habits (one proof type for nearly everything, very fast completions)

This is NOT a trained classifier. Every fired rule becomes a FraudSignal
with a human-readable reason so admins can explain and users can contest
each decision.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from hunt_guard.config import settings
from hunt_guard.schemas.submission import (
    Challenge, FraudDetectionResult, FraudRisk, FraudSignal, FraudSignalType,
    GPSCoordinate, RecommendedAction, SignalStrength, Submission,
    UserSubmissionHistory
)
from hunt_guard.services.geo_service import (
    elapsed_seconds, haversine_distance_m, travel_speed_kmh, validate_coordinate
)

logger = logging.getLogger(__name__)

THRESHOLDS = {
    # GPS spoofing
    "spoof_accuracy_m": settings.FRAUD_SPOOF_ACCURACY_M,
    "suspicious_accuracy_m": 1.0,
    "poor_accuracy_m": 100.0,
    "known_coordinate_tolerance_deg": 0.0001,

    # Travel speed (km/h)
    "max_speed_kmh": settings.FRAUD_MAX_SPEED_KMH,
    "high_speed_kmh": settings.FRAUD_HIGH_SPEED_KMH,
    "zero_elapsed_jump_m": 1000.0,  # Same-instant fixes further apart than this

    # Submission cadence
    "rapid_window_sec": settings.FRAUD_RAPID_WINDOW_SEC,
    "rapid_max_submissions": settings.FRAUD_RAPID_MAX_SUBMISSIONS,
    "regular_interval_tolerance_sec": 5.0,
    "regular_interval_ratio": 0.7,
    "regular_interval_min_intervals": 3,
    "repeated_metadata_count": 5,
    "short_interval_sec": 60.0,
    "short_interval_ratio": 0.5,
    "fast_completion_sec": 30.0,
    "fast_completion_min_samples": 3,

    # Proof habits
    "proof_type_min_total": 10,
    "proof_type_ratio": 0.9,

    # Tiering
    "weak_signals_for_high": 3,
}

SIGNAL_WEIGHTS = {
    "gps_spoof_exact": 0.95,
    "gps_spoof_known_coordinate": 0.95,
    "gps_exact_match_only": 0.5,
    "invalid_coordinates": 0.9,
    "suspicious_accuracy": 0.4,
    "poor_accuracy": 0.4,
    "impossible_travel": 0.95,
    "high_travel_speed": 0.4,
    "rapid_submissions": 0.9,
    "regular_intervals": 0.45,
    "repeated_metadata": 0.35,
    "short_intervals": 0.45,
    "fast_completion": 0.4,
    "single_proof_type": 0.5,
}

# Default locations emitted by mock-location apps and emulators
KNOWN_SPOOF_COORDINATES = [
    (0.0, 0.0),             # Null Island
    (37.7749, -122.4194),   # San Francisco
    (40.7128, -74.0060),    # New York
    (51.5074, -0.1278),     # London
]


class FraudDetectionService:
    """
    Deterministic fraud scoring for proof-of-visit submissions.

    1. Each heuristic runs independently and may emit signals
    2. Risk tier follows from signal strengths and count
    3. Confidence combines the fired signal weights
    """

    def __init__(self, thresholds: Optional[Dict[str, Any]] = None):
        self.thresholds = {**THRESHOLDS, **(thresholds or {})}

    def validate_submission(
        self,
        submission: Submission,
        challenge: Challenge,
        user_history: UserSubmissionHistory,
        now: Optional[datetime] = None
    ) -> FraudDetectionResult:
        """
        Score a submission for fraud.

        Args:
            submission: The submission being adjudicated (must carry GPS coordinates)
            challenge: Challenge the submission targets
            user_history: The user's earlier submissions
            now: Reference time for trailing windows, defaults to submission time

        Returns:
            FraudDetectionResult with tier, reasons, structured signals,
            confidence and recommended action

        Raises:
            ValueError: if the submission carries no GPS coordinates
        """
        if submission.gps_coordinates is None:
            raise ValueError(f"Submission {submission.id} has no GPS coordinates")

        reference = now or submission.submitted_at
        previous = [s for s in user_history.submissions if s.id != submission.id]

        signals: List[FraudSignal] = []
        signals.extend(self._check_gps_spoofing(submission.gps_coordinates, challenge))
        if not any(s.type == FraudSignalType.INVALID_COORDINATES for s in signals):
            signals.extend(self._check_gps_accuracy(submission.gps_coordinates))
            signals.extend(self._check_travel_speed(submission, previous))
        signals.extend(self._check_rapid_submissions(reference, previous))
        signals.extend(self._check_automation(submission, previous))
        signals.extend(self._check_proof_habits(submission, user_history, previous))

        result = self._aggregate(signals)

        if result.fraud_risk != FraudRisk.low:
            logger.info(
                f"Fraud risk {result.fraud_risk.value} for submission {submission.id} "
                f"by {submission.username}: {', '.join(result.reasons)}"
            )
        return result

    def _signal(
        self,
        signal_type: FraudSignalType,
        strength: SignalStrength,
        weight_key: str,
        reason: str,
        **details: Any
    ) -> FraudSignal:
        return FraudSignal(
            type=signal_type,
            strength=strength,
            weight=SIGNAL_WEIGHTS[weight_key],
            reason=reason,
            details=details
        )

    def _check_gps_spoofing(
        self,
        location: GPSCoordinate,
        challenge: Challenge
    ) -> List[FraudSignal]:
        """Detect mock-location fixes."""
        problems = validate_coordinate(location)
        if problems:
            return [self._signal(
                FraudSignalType.INVALID_COORDINATES, SignalStrength.strong,
                "invalid_coordinates", "Invalid GPS coordinates", errors=problems
            )]

        signals = []
        target = challenge.location.coordinates
        exact_match = (
            location.latitude == target.latitude and
            location.longitude == target.longitude
        )
        accuracy = location.accuracy

        if exact_match and accuracy is not None and accuracy <= self.thresholds["spoof_accuracy_m"]:
            signals.append(self._signal(
                FraudSignalType.GPS_SPOOFING, SignalStrength.strong, "gps_spoof_exact",
                "GPS spoofing detected: exact match with challenge coordinates",
                accuracy=accuracy
            ))
        elif exact_match:
            signals.append(self._signal(
                FraudSignalType.GPS_SPOOFING, SignalStrength.weak, "gps_exact_match_only",
                "Possible GPS spoofing: exact match with challenge coordinates",
                accuracy=accuracy
            ))
        elif accuracy is not None and accuracy < self.thresholds["suspicious_accuracy_m"]:
            signals.append(self._signal(
                FraudSignalType.SUSPICIOUS_ACCURACY, SignalStrength.weak, "suspicious_accuracy",
                "Unrealistically precise GPS accuracy", accuracy=accuracy
            ))

        tolerance = self.thresholds["known_coordinate_tolerance_deg"]
        for lat, lng in KNOWN_SPOOF_COORDINATES:
            if (abs(location.latitude - lat) < tolerance and
                    abs(location.longitude - lng) < tolerance):
                signals.append(self._signal(
                    FraudSignalType.GPS_SPOOFING, SignalStrength.strong,
                    "gps_spoof_known_coordinate",
                    "GPS spoofing detected: known default coordinate",
                    latitude=lat, longitude=lng
                ))
                break

        return signals

    def _check_gps_accuracy(self, location: GPSCoordinate) -> List[FraudSignal]:
        # Missing accuracy is tolerated; many browsers omit it
        accuracy = location.accuracy
        if accuracy is not None and accuracy > self.thresholds["poor_accuracy_m"]:
            return [self._signal(
                FraudSignalType.POOR_GPS_ACCURACY, SignalStrength.weak, "poor_accuracy",
                "Poor GPS accuracy",
                accuracy=accuracy, threshold=self.thresholds["poor_accuracy_m"]
            )]
        return []

    def _check_travel_speed(
        self,
        submission: Submission,
        previous: List[Submission]
    ) -> List[FraudSignal]:
        """Compare against the user's most recent earlier fix."""
        located = [
            s for s in previous
            if s.gps_coordinates is not None and s.submitted_at <= submission.submitted_at
        ]
        if not located:
            return []

        last = max(located, key=lambda s: s.submitted_at)
        prev_fix = last.gps_coordinates
        cur_fix = submission.gps_coordinates

        if prev_fix.timestamp is not None and cur_fix.timestamp is not None:
            elapsed = elapsed_seconds(prev_fix.timestamp, cur_fix.timestamp)
        else:
            elapsed = elapsed_seconds(last.submitted_at, submission.submitted_at)

        distance_m = haversine_distance_m(prev_fix, cur_fix)
        speed = travel_speed_kmh(prev_fix, cur_fix, elapsed)
        if speed is None:
            if distance_m <= self.thresholds["zero_elapsed_jump_m"]:
                return []
            speed = math.inf

        details = {
            "speed_kmh": speed if math.isfinite(speed) else None,
            "distance_m": round(distance_m, 1),
            "elapsed_sec": elapsed,
            "previous_submission_id": last.id,
        }

        if speed > self.thresholds["max_speed_kmh"]:
            return [self._signal(
                FraudSignalType.IMPOSSIBLE_TRAVEL, SignalStrength.strong, "impossible_travel",
                "Impossible travel speed detected", **details
            )]
        if speed > self.thresholds["high_speed_kmh"]:
            return [self._signal(
                FraudSignalType.HIGH_TRAVEL_SPEED, SignalStrength.weak, "high_travel_speed",
                "High travel speed detected", **details
            )]
        return []

    def _check_rapid_submissions(
        self,
        reference: datetime,
        previous: List[Submission]
    ) -> List[FraudSignal]:
        window_start = reference - timedelta(seconds=self.thresholds["rapid_window_sec"])
        in_window = [s for s in previous if window_start <= s.submitted_at <= reference]
        # The submission under review counts towards the burst
        count = len(in_window) + 1

        if count > self.thresholds["rapid_max_submissions"]:
            return [self._signal(
                FraudSignalType.RAPID_SUBMISSIONS, SignalStrength.strong, "rapid_submissions",
                "Rapid submission pattern detected",
                submissions_in_window=count,
                window_sec=self.thresholds["rapid_window_sec"]
            )]
        return []

    def _check_automation(
        self,
        submission: Submission,
        previous: List[Submission]
    ) -> List[FraudSignal]:
        """Bot-like regularity in timing or GPS metadata."""
        signals = []
        ordered = sorted(previous + [submission], key=lambda s: s.submitted_at)

        times = [s.submitted_at for s in ordered]
        intervals = [
            (later - earlier).total_seconds()
            for earlier, later in zip(times, times[1:])
        ]
        if len(intervals) >= self.thresholds["regular_interval_min_intervals"]:
            tolerance = self.thresholds["regular_interval_tolerance_sec"]
            pairs = list(zip(intervals, intervals[1:]))
            regular = [1 for a, b in pairs if abs(a - b) < tolerance]
            if len(regular) > len(pairs) * self.thresholds["regular_interval_ratio"]:
                signals.append(self._signal(
                    FraudSignalType.AUTOMATED_BEHAVIOR, SignalStrength.weak, "regular_intervals",
                    "Automation pattern detected: regular submission intervals",
                    intervals_sec=intervals[-10:]
                ))
            else:
                short = [i for i in intervals if i < self.thresholds["short_interval_sec"]]
                if len(short) > len(intervals) * self.thresholds["short_interval_ratio"]:
                    signals.append(self._signal(
                        FraudSignalType.RAPID_SUBMISSIONS, SignalStrength.weak, "short_intervals",
                        "Many rapid submissions detected",
                        short_intervals=len(short), total_intervals=len(intervals)
                    ))

        count = self.thresholds["repeated_metadata_count"]
        recent = [s for s in ordered if s.gps_coordinates is not None][-count:]
        if len(recent) == count and any(s is submission for s in recent):
            fingerprints = {
                (s.gps_coordinates.latitude, s.gps_coordinates.longitude, s.gps_coordinates.accuracy)
                for s in recent
            }
            if len(fingerprints) == 1 and recent[0].gps_coordinates.accuracy is not None:
                signals.append(self._signal(
                    FraudSignalType.AUTOMATED_BEHAVIOR, SignalStrength.weak, "repeated_metadata",
                    "Automation pattern detected: repeated GPS metadata",
                    repeated_count=count
                ))

        return signals

    def _check_proof_habits(
        self,
        submission: Submission,
        user_history: UserSubmissionHistory,
        previous: List[Submission]
    ) -> List[FraudSignal]:
        """One proof type for nearly everything, or challenges finished too fast."""
        signals = []

        total = user_history.total_submissions or len(previous)
        same_type = sum(1 for s in previous if s.proof_type == submission.proof_type)
        ratio = same_type / total if total else 0.0
        if total > self.thresholds["proof_type_min_total"] and ratio > self.thresholds["proof_type_ratio"]:
            signals.append(self._signal(
                FraudSignalType.AUTOMATED_BEHAVIOR, SignalStrength.weak, "single_proof_type",
                "Suspicious proof type pattern",
                proof_type_ratio=round(ratio, 3), same_type_count=same_type, total_submissions=total
            ))

        timings = [
            s.completion_time_sec for s in previous + [submission]
            if s.completion_time_sec is not None
        ]
        if len(timings) >= self.thresholds["fast_completion_min_samples"]:
            average = sum(timings) / len(timings)
            if average < self.thresholds["fast_completion_sec"]:
                signals.append(self._signal(
                    FraudSignalType.AUTOMATED_BEHAVIOR, SignalStrength.weak, "fast_completion",
                    "Unusually fast completion times",
                    avg_completion_sec=round(average, 1), samples=len(timings)
                ))

        return signals

    def _aggregate(self, signals: List[FraudSignal]) -> FraudDetectionResult:
        """Derive tier, action and confidence from fired signals."""
        strong = [s for s in signals if s.strength == SignalStrength.strong]
        weak = [s for s in signals if s.strength == SignalStrength.weak]

        if strong or len(weak) >= self.thresholds["weak_signals_for_high"]:
            risk, action = FraudRisk.high, RecommendedAction.reject
        elif weak:
            risk, action = FraudRisk.medium, RecommendedAction.review
        else:
            risk, action = FraudRisk.low, RecommendedAction.approve

        remaining = 1.0
        for signal in signals:
            remaining *= (1.0 - signal.weight)
        confidence = round(1.0 - remaining, 4)

        return FraudDetectionResult(
            is_valid=risk != FraudRisk.high,
            fraud_risk=risk,
            reasons=[s.reason for s in signals],
            signals=signals,
            confidence=confidence,
            recommended_action=action
        )


# Singleton instance
fraud_detection_service = FraudDetectionService()
