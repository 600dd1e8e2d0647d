"""
Tests for the HTTP surface through FastAPI's TestClient
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from hunt_guard.config import settings
from hunt_guard.dependencies import get_security_monitor, get_submission_validator
from hunt_guard.main import app
from hunt_guard.schemas import SubmissionValidationConfig
from hunt_guard.services.fraud_detection_service import FraudDetectionService
from hunt_guard.services.security_monitoring_service import SecurityMonitoringService
from hunt_guard.services.submission_validation_service import SubmissionValidationService
from tests.factories import DETROIT, METRES_PER_DEGREE

AUTH = {"X-API-Key": settings.API_KEY}


@pytest.fixture
def api_monitor():
    return SecurityMonitoringService()


@pytest.fixture
def api_validator(api_monitor):
    return SubmissionValidationService(
        fraud_detector=FraudDetectionService(),
        security_monitor=api_monitor,
        config=SubmissionValidationConfig()
    )


@pytest.fixture
def client(api_monitor, api_validator):
    app.dependency_overrides[get_security_monitor] = lambda: api_monitor
    app.dependency_overrides[get_submission_validator] = lambda: api_validator
    yield TestClient(app)
    app.dependency_overrides.clear()


def payload(metres_north=50.0, proof=None):
    now = datetime.now(timezone.utc)
    return {
        "submission": {
            "id": "sub_api_1",
            "challengeId": "challenge_detroit",
            "userRedditUsername": "hunter42",
            "proofType": "photo",
            "gpsCoordinates": {
                "latitude": DETROIT[0] + metres_north / METRES_PER_DEGREE,
                "longitude": DETROIT[1],
                "accuracy": 12,
            },
            "submittedAt": now.isoformat(),
        },
        "challenge": {
            "id": "challenge_detroit",
            "location": {
                "coordinates": {"latitude": DETROIT[0], "longitude": DETROIT[1]},
                "verificationRadius": 100,
            },
            "startDate": (now - timedelta(days=1)).isoformat(),
            "endDate": (now + timedelta(days=1)).isoformat(),
            "proofRequirements": {"types": ["photo", "gps_checkin"]},
        },
        "userHistory": {"submissions": []},
        "proof": proof or {
            "type": "photo",
            "data": {
                "imageUrl": "https://cdn.example.com/photos/storefront.jpg",
                "hasBusinessSignage": True,
                "gpsEmbedded": True,
            },
        },
    }


class TestSystemEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root(self, client):
        assert client.get("/").json()["service"] == "Hunt Guard"


class TestSubmissionEndpoints:

    def test_validate_within_radius(self, client):
        response = client.post("/submissions/validate", json=payload(50))
        assert response.status_code == 200
        body = response.json()
        assert body["isValid"] is True
        assert body["errors"] == []

    def test_validate_outside_radius(self, client, api_monitor):
        body = client.post("/submissions/validate", json=payload(200)).json()
        assert body["isValid"] is False
        assert [e["code"] for e in body["errors"]] == ["LOCATION_TOO_FAR"]
        assert api_monitor.get_user_security_events("hunter42")

    def test_unknown_proof_tag_is_422(self, client):
        response = client.post("/submissions/validate", json=payload(proof={"type": "video", "data": {}}))
        assert response.status_code == 422

    def test_validate_without_proof_is_422(self, client):
        body = payload(50)
        del body["proof"]
        assert client.post("/submissions/validate", json=body).status_code == 422

    def test_fraud_check(self, client):
        body = payload(50)
        del body["proof"]
        response = client.post("/submissions/fraud-check", json=body)
        assert response.status_code == 200
        assert response.json()["fraudRisk"] == "low"
        assert response.json()["recommendedAction"] == "approve"

    def test_fraud_check_without_gps_is_422(self, client):
        body = payload(50)
        del body["proof"]
        del body["submission"]["gpsCoordinates"]
        assert client.post("/submissions/fraud-check", json=body).status_code == 422

    def test_config_requires_api_key(self, client):
        assert client.get("/submissions/config").status_code == 401
        assert client.get("/submissions/config", headers={"X-API-Key": "wrong"}).status_code == 401

    def test_config_roundtrip(self, client):
        assert client.get("/submissions/config", headers=AUTH).json()["maxDailySubmissions"] == 50

        response = client.patch(
            "/submissions/config", json={"maxDailySubmissions": 10}, headers=AUTH
        )
        assert response.status_code == 200
        assert response.json()["maxDailySubmissions"] == 10
        assert response.json()["rateLimitingEnabled"] is True

    def test_invalid_config_is_422(self, client):
        response = client.patch("/submissions/config", json={"maxDailySubmissions": 0}, headers=AUTH)
        assert response.status_code == 422


class TestSecurityEndpoints:

    def test_requires_api_key(self, client):
        assert client.get("/security/alerts").status_code == 401

    def test_log_and_list_user_events(self, client):
        response = client.post("/security/events", headers=AUTH, json={
            "type": "GPS_SPOOFING", "severity": "high", "userId": "u1", "description": "spoof",
        })
        assert response.status_code == 201
        event_id = response.json()["eventId"]

        events = client.get("/security/events/user/u1", headers=AUTH).json()
        assert [e["id"] for e in events] == [event_id]
        assert events[0]["type"] == "GPS_SPOOFING"

    def test_resolve_event(self, client):
        event_id = client.post("/security/events", headers=AUTH, json={
            "type": "VALIDATION_FAILURE", "severity": "low", "userId": "u1", "description": "x",
        }).json()["eventId"]

        response = client.post(
            f"/security/events/{event_id}/resolve", headers=AUTH, json={"resolvedBy": "admin"}
        )
        assert response.status_code == 200
        assert response.json()["resolved"] is True

        missing = client.post("/security/events/sec_nope/resolve", headers=AUTH, json={"resolvedBy": "admin"})
        assert missing.status_code == 404

    def test_review_flow(self, client):
        response = client.post("/security/flags", headers=AUTH, json={
            "submissionId": "s1", "userId": "u1", "challengeId": "c1", "reason": "Medium fraud risk",
        })
        assert response.status_code == 201
        assert response.json()["reviewStatus"] == "pending"

        pending = client.get("/security/flags", headers=AUTH).json()
        assert [f["submissionId"] for f in pending] == ["s1"]

        approved = client.post("/security/flags/s1/review", headers=AUTH, json={
            "reviewerId": "mod", "decision": "approved",
        })
        assert approved.status_code == 200
        assert approved.json()["reviewStatus"] == "approved"

        again = client.post("/security/flags/s1/review", headers=AUTH, json={
            "reviewerId": "mod", "decision": "rejected",
        })
        assert again.status_code == 409

        missing = client.post("/security/flags/nope/review", headers=AUTH, json={
            "reviewerId": "mod", "decision": "approved",
        })
        assert missing.status_code == 404

    def test_unknown_flag_status_is_422(self, client):
        assert client.get("/security/flags?status=maybe", headers=AUTH).status_code == 422

    def test_metrics(self, client):
        client.post("/security/events", headers=AUTH, json={
            "type": "RATE_LIMIT_EXCEEDED", "severity": "medium", "userId": "u1", "description": "x",
        })
        body = client.get("/security/metrics?timeframe=hour", headers=AUTH).json()
        assert body["totalEvents"] == 1
        assert body["topOffendingUsers"][0]["userId"] == "u1"
        assert len(body["recentTrends"]) == 6

    def test_bad_timeframe_is_422(self, client):
        assert client.get("/security/metrics?timeframe=decade", headers=AUTH).status_code == 422

    def test_alerts_and_acknowledgment(self, client):
        client.post("/security/events", headers=AUTH, json={
            "type": "SUSPICIOUS_PATTERN", "severity": "critical", "userId": "u1", "description": "takeover",
        })
        alerts = client.get("/security/alerts", headers=AUTH).json()
        assert [a["rule"] for a in alerts] == ["critical_event"]

        alert_id = alerts[0]["id"]
        for _ in range(2):
            response = client.post(
                f"/security/alerts/{alert_id}/acknowledge", headers=AUTH, json={"acknowledgedBy": "admin"}
            )
            assert response.status_code == 200
        assert client.get("/security/alerts", headers=AUTH).json() == []

        missing = client.post(
            "/security/alerts/alert_nope/acknowledge", headers=AUTH, json={"acknowledgedBy": "admin"}
        )
        assert missing.status_code == 404
