"""
Shared fixtures for the service and API tests
"""
import pytest

from hunt_guard.schemas import SubmissionValidationConfig, UserSubmissionHistory
from hunt_guard.services.fraud_detection_service import FraudDetectionService
from hunt_guard.services.security_monitoring_service import SecurityMonitoringService
from hunt_guard.services.submission_validation_service import SubmissionValidationService
from tests.factories import FakeClock, make_challenge, make_submission


@pytest.fixture
def challenge():
    return make_challenge()


@pytest.fixture
def submission():
    return make_submission()


@pytest.fixture
def empty_history():
    return UserSubmissionHistory(username="hunter42")


@pytest.fixture
def config():
    return SubmissionValidationConfig()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monitor(clock):
    return SecurityMonitoringService(clock=clock)


@pytest.fixture
def fraud_detector():
    return FraudDetectionService()


@pytest.fixture
def validator(fraud_detector, config):
    return SubmissionValidationService(fraud_detector=fraud_detector, config=config)
