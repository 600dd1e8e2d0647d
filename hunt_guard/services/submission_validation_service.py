"""
Submission Validation Service - adjudicates proof-of-visit submissions

Runs AFTER a user submits proof for a location challenge:
1. Structural and challenge-window checks
2. Duplicate and rate-limit checks against the user's history
3. Geospatial check against the challenge's verification radius
4. Per-type proof validation
5. Fraud detection

All applicable checks accumulate into one ValidationResult. Unexpected
failures never escape; they collapse into a single VALIDATION_SYSTEM_ERROR.
"""
import logging
import threading
from datetime import datetime, timedelta
from typing import Any, List, Optional

from hunt_guard.config import settings
from hunt_guard.schemas.submission import (
    Challenge, ChallengeStatus, FraudDetectionResult, FraudRisk, ProofType,
    Submission, SubmissionValidationConfig, UserSubmissionHistory,
    ValidationIssue, ValidationResult, VerificationStatus, utc_now
)
from hunt_guard.services.fraud_detection_service import (
    FraudDetectionService, fraud_detection_service
)
from hunt_guard.services.geo_service import (
    format_distance, validate_coordinate, verify_within_radius
)
from hunt_guard.services.proof_validation_service import validate_proof
from hunt_guard.services.security_monitoring_service import security_monitoring_service

logger = logging.getLogger(__name__)

RATE_LIMIT_WINDOW = timedelta(hours=24)


def default_config() -> SubmissionValidationConfig:
    """Validator defaults taken from application settings"""
    return SubmissionValidationConfig(
        max_daily_submissions=settings.MAX_DAILY_SUBMISSIONS,
        min_submission_interval=settings.MIN_SUBMISSION_INTERVAL_SEC,
        gps_accuracy_threshold=settings.GPS_ACCURACY_THRESHOLD_M,
        max_photo_size=settings.MAX_PHOTO_SIZE_BYTES,
        allowed_image_types=settings.ALLOWED_IMAGE_TYPES,
        receipt_max_age_hours=settings.RECEIPT_MAX_AGE_HOURS,
        duplicate_prevention_enabled=settings.DUPLICATE_PREVENTION_ENABLED,
        rate_limiting_enabled=settings.RATE_LIMITING_ENABLED,
        photo_validation_enabled=settings.PHOTO_VALIDATION_ENABLED
    )


class SubmissionValidationService:
    """
    Service for validating challenge submissions.

    The fraud detector is injected so callers can tune its thresholds.
    When a security monitor is wired in, failures and fraud outcomes are
    forwarded to it on a best-effort basis.
    """

    def __init__(
        self,
        fraud_detector: Optional[FraudDetectionService] = None,
        security_monitor: Optional[Any] = None,
        config: Optional[SubmissionValidationConfig] = None
    ):
        self.fraud_detector = fraud_detector or fraud_detection_service
        self.security_monitor = security_monitor
        self._config = config or default_config()
        self._config_lock = threading.Lock()

    # ============================================================
    # CONFIGURATION
    # ============================================================

    def get_config(self) -> SubmissionValidationConfig:
        return self._config.model_copy()

    def update_config(self, **changes: Any) -> SubmissionValidationConfig:
        """
        Replace the instance config with a validated copy carrying ``changes``.

        Raises:
            ValueError: on unknown fields or invalid values
        """
        unknown = set(changes) - set(SubmissionValidationConfig.model_fields)
        if unknown:
            raise ValueError(f"Unknown config fields: {', '.join(sorted(unknown))}")

        with self._config_lock:
            updated = SubmissionValidationConfig(**{**self._config.model_dump(), **changes})
            self._config = updated

        logger.info(f"Submission validation config updated: {changes}")
        return updated.model_copy()

    # ============================================================
    # VALIDATION
    # ============================================================

    def validate_submission(
        self,
        submission: Submission,
        challenge: Challenge,
        user_history: UserSubmissionHistory,
        proof: Any,
        config: Optional[SubmissionValidationConfig] = None,
        now: Optional[datetime] = None
    ) -> ValidationResult:
        """
        Validate a submission end to end.

        Args:
            submission: The submission under review
            challenge: Challenge the submission claims
            user_history: The user's earlier submissions
            proof: One of the ProofSubmission variants
            config: Per-call override of the instance config
            now: Reference time, defaults to the current UTC time

        Returns:
            ValidationResult; isValid is true iff no errors were recorded
        """
        config = config or self._config
        now = now or utc_now()
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []
        fraud_result: Optional[FraudDetectionResult] = None

        try:
            history = [s for s in user_history.submissions if s.id != submission.id]

            errors.extend(self._check_structure(submission, challenge, now))

            if config.duplicate_prevention_enabled:
                errors.extend(self._check_duplicate(challenge, history))

            if config.rate_limiting_enabled:
                errors.extend(self._check_rate_limit(user_history, history, config, now))

            type_errors = self._check_proof_type(submission, challenge, proof)
            errors.extend(type_errors)

            errors.extend(self._check_location(submission, challenge, config))

            if proof is None:
                errors.append(ValidationIssue(
                    field="proof", message="Proof of visit is required", code="MISSING_PROOF"
                ))
            elif not type_errors:
                proof_result = validate_proof(proof, challenge, submission, config)
                errors.extend(proof_result.errors)
                warnings.extend(proof_result.warnings)

            fraud_result = self.fraud_detector.validate_submission(
                submission, challenge, user_history, now=now
            )
            if fraud_result.fraud_risk == FraudRisk.high:
                errors.append(ValidationIssue(
                    field="submission",
                    message=f"Fraud detected: {', '.join(fraud_result.reasons)}",
                    code="FRAUD_DETECTED"
                ))
            elif fraud_result.fraud_risk == FraudRisk.medium:
                warnings.append(ValidationIssue(
                    field="submission",
                    message=f"Submission flagged for review: {', '.join(fraud_result.reasons)}",
                    code="FRAUD_WARNING"
                ))

            result = ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

        except Exception as e:
            logger.error(f"Error validating submission {submission.id}: {e}")
            fraud_result = None
            result = ValidationResult(
                is_valid=False,
                errors=[ValidationIssue(
                    field="submission",
                    message="Validation system error. Please try again.",
                    code="VALIDATION_SYSTEM_ERROR"
                )]
            )

        if self.security_monitor is not None:
            self._forward_to_monitor(submission, challenge, result, fraud_result)

        if not result.is_valid:
            logger.info(
                f"Submission {submission.id} rejected for challenge {challenge.id}: "
                f"{', '.join(result.error_codes())}"
            )
        return result

    def _check_structure(
        self,
        submission: Submission,
        challenge: Challenge,
        now: datetime
    ) -> List[ValidationIssue]:
        errors = []

        if not submission.challenge_id:
            errors.append(ValidationIssue(
                field="challengeId", message="Challenge ID is required", code="MISSING_CHALLENGE_ID"
            ))
        elif submission.challenge_id != challenge.id:
            errors.append(ValidationIssue(
                field="challengeId",
                message="Submission does not belong to this challenge",
                code="CHALLENGE_MISMATCH"
            ))

        if not submission.username:
            errors.append(ValidationIssue(
                field="username", message="User is required", code="MISSING_USER"
            ))

        if submission.proof_type is None:
            errors.append(ValidationIssue(
                field="proofType", message="Proof type is required", code="MISSING_PROOF_TYPE"
            ))

        if challenge.status != ChallengeStatus.active:
            errors.append(ValidationIssue(
                field="challenge",
                message=f"Challenge is not active (status: {challenge.status.value})",
                code="CHALLENGE_INACTIVE"
            ))

        if challenge.start_date > now:
            errors.append(ValidationIssue(
                field="challenge", message="Challenge has not started yet", code="CHALLENGE_NOT_STARTED"
            ))

        if challenge.end_date < now:
            errors.append(ValidationIssue(
                field="challenge", message="Challenge has expired", code="CHALLENGE_EXPIRED"
            ))

        return errors

    def _check_duplicate(
        self,
        challenge: Challenge,
        history: List[Submission]
    ) -> List[ValidationIssue]:
        # Only an approved completion blocks; rejected attempts may be retried
        for previous in history:
            if (previous.challenge_id == challenge.id and
                    previous.verification_status == VerificationStatus.approved):
                return [ValidationIssue(
                    field="challenge",
                    message="You have already completed this challenge",
                    code="DUPLICATE_SUBMISSION"
                )]
        return []

    def _check_rate_limit(
        self,
        user_history: UserSubmissionHistory,
        history: List[Submission],
        config: SubmissionValidationConfig,
        now: datetime
    ) -> List[ValidationIssue]:
        window_start = now - RATE_LIMIT_WINDOW
        in_window = sorted(s.submitted_at for s in history if s.submitted_at >= window_start)

        next_allowed = []
        if len(in_window) >= config.max_daily_submissions:
            # The window frees up when enough of the oldest entries age out
            release_index = len(in_window) - config.max_daily_submissions
            next_allowed.append(in_window[release_index] + RATE_LIMIT_WINDOW)

        last = user_history.last_submission_at
        if last is not None:
            earliest = last + timedelta(seconds=config.min_submission_interval)
            if now < earliest:
                next_allowed.append(earliest)

        if not next_allowed:
            return []

        return [ValidationIssue(
            field="submission",
            message=f"Rate limit exceeded. Next submission allowed at {max(next_allowed).isoformat()}",
            code="RATE_LIMIT_EXCEEDED"
        )]

    def _check_proof_type(
        self,
        submission: Submission,
        challenge: Challenge,
        proof: Any
    ) -> List[ValidationIssue]:
        if submission.proof_type is None:
            return []

        # An empty allow-list accepts nothing
        allowed = challenge.proof_requirements.types
        if submission.proof_type not in allowed:
            return [ValidationIssue(
                field="proofType",
                message=f"Proof type must be one of: {', '.join(t.value for t in allowed) or 'none'}",
                code="INVALID_PROOF_TYPE"
            )]

        if proof is not None and ProofType(proof.type) != submission.proof_type:
            return [ValidationIssue(
                field="proofType",
                message=f"Proof data of type '{proof.type}' does not match proof type "
                        f"'{submission.proof_type.value}'",
                code="INVALID_PROOF_TYPE"
            )]

        return []

    def _check_location(
        self,
        submission: Submission,
        challenge: Challenge,
        config: SubmissionValidationConfig
    ) -> List[ValidationIssue]:
        """
        Raises:
            ValueError: when the submission carries no GPS coordinates
        """
        location = submission.gps_coordinates
        if location is None:
            raise ValueError(f"Submission {submission.id} has no GPS coordinates")

        if validate_coordinate(location):
            return [ValidationIssue(
                field="gpsCoordinates",
                message="Invalid GPS coordinates",
                code="INVALID_GPS_COORDINATES"
            )]

        errors = []
        if location.accuracy is not None and location.accuracy > config.gps_accuracy_threshold:
            errors.append(ValidationIssue(
                field="gpsCoordinates",
                message=f"GPS accuracy too low ({format_distance(location.accuracy)}). "
                        f"Please try again with better signal.",
                code="POOR_GPS_ACCURACY"
            ))

        radius = challenge.location.verification_radius
        check = verify_within_radius(location, challenge.location.coordinates, radius)
        if not check.is_valid:
            errors.append(ValidationIssue(
                field="gpsCoordinates",
                message=f"You must be within {format_distance(radius)} of the challenge location. "
                        f"You are {format_distance(check.distance)} away.",
                code="LOCATION_TOO_FAR"
            ))

        return errors

    # ============================================================
    # SECURITY FORWARDING
    # ============================================================

    def _forward_to_monitor(
        self,
        submission: Submission,
        challenge: Challenge,
        result: ValidationResult,
        fraud_result: Optional[FraudDetectionResult]
    ) -> None:
        user_id = submission.username or "anonymous"
        challenge_id = submission.challenge_id or challenge.id
        fraud_logged = fraud_result is not None and fraud_result.fraud_risk != FraudRisk.low

        try:
            if fraud_logged:
                self.security_monitor.log_fraud_detection(
                    user_id, challenge_id, submission.id, fraud_result
                )

            # FRAUD_DETECTED already has its own event from the fraud log
            failures = [
                e for e in result.errors
                if not (fraud_logged and e.code == "FRAUD_DETECTED")
            ]
            if failures:
                self.security_monitor.log_validation_failure(
                    user_id,
                    challenge_id,
                    submission.id,
                    result.model_copy(update={"errors": failures})
                )

            if fraud_result is not None and fraud_result.fraud_risk == FraudRisk.medium:
                self.security_monitor.flag_submission_for_review(
                    submission.id,
                    user_id,
                    challenge_id,
                    f"Medium fraud risk: {', '.join(fraud_result.reasons)}",
                    "medium",
                    indicators=[s.type.value for s in fraud_result.signals],
                    score=fraud_result.confidence,
                    metadata={"recommended_action": fraud_result.recommended_action.value}
                )
        except Exception as e:
            logger.error(f"Error forwarding submission {submission.id} to security monitor: {e}")


# Singleton instance
submission_validation_service = SubmissionValidationService(
    security_monitor=security_monitoring_service
)
