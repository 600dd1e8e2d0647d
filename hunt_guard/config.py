"""
Configuration module for the Hunt Guard submission validation service
Loads environment variables and provides settings
"""
from functools import lru_cache
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_ENV: str = "development"
    APP_DEBUG: bool = False
    API_KEY: str = "internal-api-key"

    # Database (optional audit mirror for security records)
    DATABASE_URL: str = "sqlite:///./hunt_guard.db"
    SECURITY_PERSISTENCE_ENABLED: bool = False

    # Submission validation defaults
    MAX_DAILY_SUBMISSIONS: int = 50
    MIN_SUBMISSION_INTERVAL_SEC: int = 60
    GPS_ACCURACY_THRESHOLD_M: float = 300.0
    MAX_PHOTO_SIZE_BYTES: int = 10 * 1024 * 1024
    ALLOWED_IMAGE_TYPES: List[str] = ["image/jpeg", "image/png", "image/webp"]
    RECEIPT_MAX_AGE_HOURS: float = 24.0
    DUPLICATE_PREVENTION_ENABLED: bool = True
    RATE_LIMITING_ENABLED: bool = True
    PHOTO_VALIDATION_ENABLED: bool = True

    # Fraud heuristics
    FRAUD_MAX_SPEED_KMH: float = 200.0
    FRAUD_HIGH_SPEED_KMH: float = 120.0
    FRAUD_SPOOF_ACCURACY_M: float = 2.0
    FRAUD_RAPID_WINDOW_SEC: int = 180
    FRAUD_RAPID_MAX_SUBMISSIONS: int = 5

    # Security alert thresholds
    ALERT_FRAUD_EVENTS_PER_HOUR: int = 10
    ALERT_UNIQUE_FRAUD_USERS_PER_DAY: int = 5
    ALERT_GPS_SPOOFING_PER_HOUR: int = 5
    ALERT_RATE_LIMIT_PER_HOUR: int = 20

    class Config:
        env_file = ".env"
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
