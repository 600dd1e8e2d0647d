"""
Services package
"""
from hunt_guard.services.fraud_detection_service import (
    FraudDetectionService, fraud_detection_service
)
from hunt_guard.services.security_monitoring_service import (
    SecurityMonitoringService, security_monitoring_service
)
from hunt_guard.services.submission_validation_service import (
    SubmissionValidationService, submission_validation_service
)

__all__ = [
    "FraudDetectionService",
    "fraud_detection_service",
    "SecurityMonitoringService",
    "security_monitoring_service",
    "SubmissionValidationService",
    "submission_validation_service",
]
