"""
Proof Validation Service - per-type checks for proof-of-visit evidence

One pure validator per proof variant:
- photo: image URL presence and shape, signage/interior hints
- receipt: image, business name, receipt age relative to the submission
- gps_checkin: check-in fix inside the challenge's verification radius
- location_question: exact answer match

Validators are selected by the proof's ``type`` tag through PROOF_VALIDATORS.
Photo checks are structural only; no pixel analysis is done here.
"""
import base64
import binascii
import logging
from datetime import timedelta
from typing import Callable, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from hunt_guard.schemas.submission import (
    Challenge, GPSProof, PhotoProof, ProofType, QuestionProof, ReceiptProof,
    Submission, SubmissionValidationConfig, ValidationIssue
)
from hunt_guard.services.geo_service import format_distance, verify_within_radius

logger = logging.getLogger(__name__)

# Shortest plausible image reference
MIN_IMAGE_URL_LENGTH = 10

# Receipts stamped slightly after the submission are tolerated (clock skew)
RECEIPT_FUTURE_SKEW = timedelta(minutes=5)


class ProofCheckResult(BaseModel):
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)

    def error(self, field: str, message: str, code: str) -> None:
        self.errors.append(ValidationIssue(field=field, message=message, code=code))

    def warn(self, field: str, message: str, code: str) -> None:
        self.warnings.append(ValidationIssue(field=field, message=message, code=code))


ProofValidator = Callable[
    [BaseModel, Challenge, Submission, SubmissionValidationConfig], ProofCheckResult
]


def _data_uri_parts(url: str) -> Optional[tuple]:
    """Split ``data:<mime>;base64,<payload>`` into (mime, payload), None if not one"""
    if not url.startswith("data:"):
        return None
    header, sep, payload = url[5:].partition(",")
    if not sep or not header.endswith(";base64"):
        return None
    return header[: -len(";base64")].lower(), payload


def _is_well_formed_image_url(url: str) -> bool:
    if len(url) < MIN_IMAGE_URL_LENGTH:
        return False
    if _data_uri_parts(url) is not None:
        return True
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_photo_proof(
    data: PhotoProof,
    challenge: Challenge,
    submission: Submission,
    config: SubmissionValidationConfig
) -> ProofCheckResult:
    result = ProofCheckResult()
    url = (data.image_url or "").strip()

    if not url:
        result.error("imageUrl", "Photo is required", "MISSING_PHOTO")
        return result

    if config.photo_validation_enabled:
        if not _is_well_formed_image_url(url):
            result.error("imageUrl", "Invalid photo data", "INVALID_PHOTO_DATA")
        else:
            parts = _data_uri_parts(url)
            if parts is not None:
                mime, payload = parts
                if mime not in config.allowed_image_types:
                    result.error(
                        "imageUrl",
                        f"Image type '{mime}' is not supported",
                        "UNSUPPORTED_IMAGE_TYPE"
                    )
                try:
                    size = len(base64.b64decode(payload, validate=True))
                except (binascii.Error, ValueError):
                    result.error("imageUrl", "Invalid photo data", "INVALID_PHOTO_DATA")
                else:
                    if size > config.max_photo_size:
                        result.error(
                            "imageUrl",
                            f"Photo exceeds the {config.max_photo_size // (1024 * 1024)}MB limit",
                            "PHOTO_TOO_LARGE"
                        )

    # Hints never block
    if not data.has_business_signage and not data.has_interior_view:
        result.warn(
            "photo",
            "Photo should show business signage or interior for verification",
            "NO_BUSINESS_INDICATORS"
        )
    if not data.gps_embedded:
        result.warn("photo", "Photo does not contain GPS metadata", "NO_GPS_METADATA")

    return result


def validate_receipt_proof(
    data: ReceiptProof,
    challenge: Challenge,
    submission: Submission,
    config: SubmissionValidationConfig
) -> ProofCheckResult:
    result = ProofCheckResult()

    if not (data.image_url or "").strip():
        result.error("imageUrl", "Receipt photo is required", "MISSING_RECEIPT_PHOTO")

    business_name = (data.business_name or "").strip()
    if len(business_name) < 2:
        result.error("businessName", "Business name is required", "MISSING_BUSINESS_NAME")
    elif challenge.location.business_name:
        expected = challenge.location.business_name.strip().lower()
        if expected and expected not in business_name.lower():
            result.warn(
                "businessName",
                f"Receipt business name does not match {challenge.location.business_name}",
                "BUSINESS_NAME_MISMATCH"
            )

    if data.timestamp is None:
        result.error("timestamp", "Receipt timestamp is required", "MISSING_RECEIPT_TIMESTAMP")
        return result

    age = submission.submitted_at - data.timestamp
    if age > timedelta(hours=config.receipt_max_age_hours):
        result.error(
            "timestamp",
            f"Receipt must be from within {config.receipt_max_age_hours:g} hours of the submission",
            "RECEIPT_TOO_OLD"
        )
    elif age < -RECEIPT_FUTURE_SKEW:
        result.error(
            "timestamp",
            "Receipt timestamp is later than the submission",
            "RECEIPT_TIMESTAMP_INVALID"
        )

    return result


def validate_gps_proof(
    data: GPSProof,
    challenge: Challenge,
    submission: Submission,
    config: SubmissionValidationConfig
) -> ProofCheckResult:
    result = ProofCheckResult()

    if data.check_in_time is None:
        result.error("checkInTime", "Check-in timestamp is required", "MISSING_CHECKIN_TIME")

    if data.coordinates is None:
        result.error(
            "coordinates",
            "GPS coordinates are required for check-in",
            "MISSING_GPS_COORDINATES"
        )
        return result

    # The challenge radius is authoritative; the client-sent radius is ignored
    radius = challenge.location.verification_radius
    check = verify_within_radius(data.coordinates, challenge.location.coordinates, radius)
    if not check.is_valid:
        result.error(
            "coordinates",
            f"Check-in must be within {format_distance(radius)} of the challenge location. "
            f"You are {format_distance(check.distance)} away.",
            "CHECKIN_TOO_FAR"
        )

    return result


def validate_question_proof(
    data: QuestionProof,
    challenge: Challenge,
    submission: Submission,
    config: SubmissionValidationConfig
) -> ProofCheckResult:
    result = ProofCheckResult()

    if not data.question:
        result.error("question", "Question is required", "MISSING_QUESTION")

    if not (data.answer or "").strip():
        result.error("answer", "Answer is required", "INVALID_ANSWER")
        return result

    if data.answer != data.correct_answer:
        result.error(
            "answer",
            "Incorrect answer. Please visit the location to find the correct answer.",
            "INCORRECT_ANSWER"
        )

    return result


PROOF_VALIDATORS: Dict[ProofType, ProofValidator] = {
    ProofType.photo: validate_photo_proof,
    ProofType.receipt: validate_receipt_proof,
    ProofType.gps_checkin: validate_gps_proof,
    ProofType.location_question: validate_question_proof,
}


def validate_proof(
    proof,
    challenge: Challenge,
    submission: Submission,
    config: SubmissionValidationConfig
) -> ProofCheckResult:
    """Dispatch a proof to the validator registered for its type tag."""
    validator = PROOF_VALIDATORS[ProofType(proof.type)]
    logger.debug(f"Validating {proof.type} proof for submission {submission.id}")
    return validator(proof.data, challenge, submission, config)
