"""
FastAPI dependencies for the Hunt Guard service
"""
from typing import Generator, Optional
from fastapi import HTTPException, Header, status
from sqlalchemy.orm import Session
from hunt_guard.db.database import SessionLocal
from hunt_guard.config import settings
from hunt_guard.services.security_monitoring_service import (
    SecurityMonitoringService, security_monitoring_service
)
from hunt_guard.services.submission_validation_service import (
    SubmissionValidationService, submission_validation_service
)


def get_db() -> Generator[Session, None, None]:
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def verify_api_key(x_api_key: Optional[str] = Header(None)) -> str:
    """Verify API key for internal endpoints"""
    if not x_api_key or x_api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key"
        )
    return x_api_key


def get_security_monitor() -> SecurityMonitoringService:
    return security_monitoring_service


def get_submission_validator() -> SubmissionValidationService:
    return submission_validation_service
