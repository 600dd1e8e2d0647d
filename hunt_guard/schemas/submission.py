"""
Pydantic schemas for challenges, submissions, proofs and validation outcomes.

Wire names are camelCase (``challengeId``, ``verificationRadius``), Python
attributes are snake_case. Both spellings are accepted on input.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    AfterValidator, AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter
)
from pydantic.alias_generators import to_camel


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so every comparison is between aware values"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================
# ENUMS
# ============================================
class ProofType(str, Enum):
    photo = "photo"
    receipt = "receipt"
    gps_checkin = "gps_checkin"
    location_question = "location_question"


class ChallengeStatus(str, Enum):
    draft = "draft"
    active = "active"
    expired = "expired"
    closed = "closed"
    completed = "completed"


class VerificationStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class FraudRisk(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class RecommendedAction(str, Enum):
    approve = "approve"
    review = "review"
    reject = "reject"


class SignalStrength(str, Enum):
    weak = "weak"
    strong = "strong"


class FraudSignalType(str, Enum):
    GPS_SPOOFING = "GPS_SPOOFING"
    INVALID_COORDINATES = "INVALID_COORDINATES"
    SUSPICIOUS_ACCURACY = "SUSPICIOUS_ACCURACY"
    IMPOSSIBLE_TRAVEL = "IMPOSSIBLE_TRAVEL"
    HIGH_TRAVEL_SPEED = "HIGH_TRAVEL_SPEED"
    RAPID_SUBMISSIONS = "RAPID_SUBMISSIONS"
    AUTOMATED_BEHAVIOR = "AUTOMATED_BEHAVIOR"
    POOR_GPS_ACCURACY = "POOR_GPS_ACCURACY"


# ============================================
# LOCATION & CHALLENGE SCHEMAS
# ============================================
class GPSCoordinate(CamelModel):
    """A GPS fix. Accuracy is the reported radius of uncertainty in metres."""
    latitude: float = Field(..., validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(..., validation_alias=AliasChoices("longitude", "lng", "lon"))
    accuracy: Optional[float] = None
    timestamp: Optional[UtcDatetime] = None


class ChallengeLocation(CamelModel):
    coordinates: GPSCoordinate
    verification_radius: float = Field(100.0, gt=0, description="Radius in metres")
    business_name: Optional[str] = None
    address: Optional[str] = None


class ProofRequirements(CamelModel):
    types: List[ProofType] = Field(default_factory=list)
    instructions: Optional[str] = None


class Challenge(CamelModel):
    """Location-bound challenge, owned by the external challenge catalog"""
    id: str
    title: Optional[str] = None
    location: ChallengeLocation
    start_date: UtcDatetime
    end_date: UtcDatetime
    proof_requirements: ProofRequirements = Field(default_factory=ProofRequirements)
    status: ChallengeStatus = ChallengeStatus.active


# ============================================
# SUBMISSION SCHEMAS
# ============================================
class Submission(CamelModel):
    """A user's proof-of-visit claim for a challenge"""
    id: str = Field(default_factory=lambda: f"sub_{uuid.uuid4().hex[:12]}")
    challenge_id: Optional[str] = None
    username: Optional[str] = Field(
        None, validation_alias=AliasChoices("username", "userRedditUsername", "user_reddit_username")
    )
    proof_type: Optional[ProofType] = None
    gps_coordinates: Optional[GPSCoordinate] = None
    submitted_at: UtcDatetime = Field(default_factory=utc_now)
    verification_status: VerificationStatus = VerificationStatus.pending
    fraud_risk_score: float = 0.0
    # Seconds between opening the challenge and submitting, when the client reports it
    completion_time_sec: Optional[float] = None


class UserSubmissionHistory(CamelModel):
    """Read-only view of a user's earlier submissions"""
    username: Optional[str] = Field(
        None, validation_alias=AliasChoices("username", "userRedditUsername", "user_reddit_username")
    )
    submissions: List[Submission] = Field(default_factory=list)
    last_submission_at: Optional[UtcDatetime] = None
    total_submissions: int = 0
    suspicious_activity_count: int = 0


# ============================================
# PROOF SCHEMAS (discriminated on ``type``)
# ============================================
class ProofMetadata(CamelModel):
    timestamp: Optional[UtcDatetime] = None
    location: Optional[GPSCoordinate] = None
    device_info: Optional[str] = None


class PhotoProof(CamelModel):
    image_url: str = ""
    has_business_signage: bool = False
    has_interior_view: bool = False
    gps_embedded: bool = False


class ReceiptProof(CamelModel):
    image_url: str = ""
    business_name: str = ""
    timestamp: Optional[UtcDatetime] = None
    amount: Optional[float] = None


class GPSProof(CamelModel):
    coordinates: Optional[GPSCoordinate] = None
    verification_radius: Optional[float] = None
    check_in_time: Optional[UtcDatetime] = None


class QuestionProof(CamelModel):
    question: str = ""
    answer: str = ""
    correct_answer: str = ""


class PhotoProofSubmission(CamelModel):
    type: Literal["photo"] = "photo"
    data: PhotoProof
    metadata: Optional[ProofMetadata] = None


class ReceiptProofSubmission(CamelModel):
    type: Literal["receipt"] = "receipt"
    data: ReceiptProof
    metadata: Optional[ProofMetadata] = None


class GPSProofSubmission(CamelModel):
    type: Literal["gps_checkin"] = "gps_checkin"
    data: GPSProof
    metadata: Optional[ProofMetadata] = None


class QuestionProofSubmission(CamelModel):
    type: Literal["location_question"] = "location_question"
    data: QuestionProof
    metadata: Optional[ProofMetadata] = None


ProofSubmission = Annotated[
    Union[
        PhotoProofSubmission,
        ReceiptProofSubmission,
        GPSProofSubmission,
        QuestionProofSubmission,
    ],
    Field(discriminator="type"),
]

_proof_adapter = TypeAdapter(ProofSubmission)


def parse_proof(payload: Any) -> Union[
    PhotoProofSubmission, ReceiptProofSubmission, GPSProofSubmission, QuestionProofSubmission
]:
    """Build the matching proof variant from a plain dict using its ``type`` tag"""
    return _proof_adapter.validate_python(payload)


# ============================================
# VALIDATION RESULT SCHEMAS
# ============================================
class ValidationIssue(CamelModel):
    """A single error or warning. Consumers branch on ``code``, never on ``message``."""
    field: str
    message: str
    code: str


class ValidationResult(CamelModel):
    is_valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)

    def error_codes(self) -> List[str]:
        return [e.code for e in self.errors]

    def warning_codes(self) -> List[str]:
        return [w.code for w in self.warnings]


class FraudSignal(CamelModel):
    """Structured tag for one fired fraud heuristic"""
    type: FraudSignalType
    strength: SignalStrength
    weight: float = Field(..., ge=0, le=1)
    reason: str
    details: Dict[str, Any] = Field(default_factory=dict)


class FraudDetectionResult(CamelModel):
    is_valid: bool
    fraud_risk: FraudRisk
    reasons: List[str] = Field(default_factory=list)
    signals: List[FraudSignal] = Field(default_factory=list)
    confidence: float = Field(..., ge=0, le=1)
    recommended_action: RecommendedAction


class SubmissionValidationConfig(CamelModel):
    """Thresholds and feature toggles for one validation call"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    max_daily_submissions: int = Field(50, ge=1)
    min_submission_interval: float = Field(60, ge=0, description="Seconds")
    gps_accuracy_threshold: float = Field(300.0, gt=0, description="Metres")
    max_photo_size: int = Field(10 * 1024 * 1024, gt=0, description="Bytes")
    allowed_image_types: List[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/webp"]
    )
    receipt_max_age_hours: float = Field(24.0, gt=0)
    duplicate_prevention_enabled: bool = True
    rate_limiting_enabled: bool = True
    photo_validation_enabled: bool = True
