"""
Submissions Router - submission validation and fraud scoring
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field

from hunt_guard.dependencies import get_submission_validator, verify_api_key
from hunt_guard.schemas.submission import (
    CamelModel, Challenge, FraudDetectionResult, ProofSubmission, Submission,
    SubmissionValidationConfig, UserSubmissionHistory, ValidationResult
)
from hunt_guard.services.submission_validation_service import SubmissionValidationService

logger = logging.getLogger(__name__)

router = APIRouter()


class ValidateSubmissionRequest(CamelModel):
    submission: Submission
    challenge: Challenge
    user_history: UserSubmissionHistory = Field(default_factory=UserSubmissionHistory)
    proof: ProofSubmission


class FraudCheckRequest(CamelModel):
    submission: Submission
    challenge: Challenge
    user_history: UserSubmissionHistory = Field(default_factory=UserSubmissionHistory)


class ConfigUpdateRequest(CamelModel):
    max_daily_submissions: Optional[int] = None
    min_submission_interval: Optional[float] = None
    gps_accuracy_threshold: Optional[float] = None
    max_photo_size: Optional[int] = None
    allowed_image_types: Optional[List[str]] = None
    receipt_max_age_hours: Optional[float] = None
    duplicate_prevention_enabled: Optional[bool] = None
    rate_limiting_enabled: Optional[bool] = None
    photo_validation_enabled: Optional[bool] = None


@router.post("/validate", response_model=ValidationResult)
async def validate_submission(
    request: ValidateSubmissionRequest,
    validator: SubmissionValidationService = Depends(get_submission_validator)
):
    """
    Validate a proof-of-visit submission.

    Business failures come back as ``errors``/``warnings`` with stable codes;
    the endpoint itself only fails on malformed bodies.
    """
    return validator.validate_submission(
        submission=request.submission,
        challenge=request.challenge,
        user_history=request.user_history,
        proof=request.proof
    )


@router.post("/fraud-check", response_model=FraudDetectionResult)
async def fraud_check(
    request: FraudCheckRequest,
    validator: SubmissionValidationService = Depends(get_submission_validator)
):
    """Score a submission for fraud without running the full validation pipeline."""
    try:
        return validator.fraud_detector.validate_submission(
            request.submission,
            request.challenge,
            request.user_history
        )
    except ValueError as e:
        logger.warning(f"Fraud check rejected: {e}")
        raise HTTPException(status_code=422, detail=str(e))


@router.get(
    "/config",
    response_model=SubmissionValidationConfig,
    dependencies=[Depends(verify_api_key)]
)
async def get_config(
    validator: SubmissionValidationService = Depends(get_submission_validator)
):
    return validator.get_config()


@router.patch(
    "/config",
    response_model=SubmissionValidationConfig,
    dependencies=[Depends(verify_api_key)]
)
async def update_config(
    request: ConfigUpdateRequest,
    validator: SubmissionValidationService = Depends(get_submission_validator)
):
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    try:
        return validator.update_config(**changes)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
