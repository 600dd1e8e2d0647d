"""
Schemas package - Pydantic models for the validation and security pipeline
"""
from hunt_guard.schemas.submission import (
    ProofType, ChallengeStatus, VerificationStatus, FraudRisk, RecommendedAction,
    SignalStrength, FraudSignalType, GPSCoordinate, ChallengeLocation,
    ProofRequirements, Challenge, Submission, UserSubmissionHistory,
    ProofMetadata, PhotoProof, ReceiptProof, GPSProof, QuestionProof,
    PhotoProofSubmission, ReceiptProofSubmission, GPSProofSubmission,
    QuestionProofSubmission, ProofSubmission, parse_proof, ValidationIssue,
    ValidationResult, FraudSignal, FraudDetectionResult, SubmissionValidationConfig,
    as_utc, utc_now
)
from hunt_guard.schemas.security import (
    SecurityEventType, Severity, SEVERITY_ORDER, ReviewStatus, AlertType,
    MetricsTimeframe, SecurityEvent, ReviewRecord, FlaggedSubmission,
    SecurityAlert, OffendingUser, TrendPoint, SecurityMetrics
)

__all__ = [
    "ProofType",
    "ChallengeStatus",
    "VerificationStatus",
    "FraudRisk",
    "RecommendedAction",
    "SignalStrength",
    "FraudSignalType",
    "GPSCoordinate",
    "ChallengeLocation",
    "ProofRequirements",
    "Challenge",
    "Submission",
    "UserSubmissionHistory",
    "ProofMetadata",
    "PhotoProof",
    "ReceiptProof",
    "GPSProof",
    "QuestionProof",
    "PhotoProofSubmission",
    "ReceiptProofSubmission",
    "GPSProofSubmission",
    "QuestionProofSubmission",
    "ProofSubmission",
    "parse_proof",
    "ValidationIssue",
    "ValidationResult",
    "FraudSignal",
    "FraudDetectionResult",
    "SubmissionValidationConfig",
    "as_utc",
    "utc_now",
    "SecurityEventType",
    "Severity",
    "SEVERITY_ORDER",
    "ReviewStatus",
    "AlertType",
    "MetricsTimeframe",
    "SecurityEvent",
    "ReviewRecord",
    "FlaggedSubmission",
    "SecurityAlert",
    "OffendingUser",
    "TrendPoint",
    "SecurityMetrics",
]
