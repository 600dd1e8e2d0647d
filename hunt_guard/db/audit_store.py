"""
Security audit store - mirrors security monitor state into the database

Every write is an upsert keyed on the record id, so repeated saves of the
same event/flag/alert (resolution, review, acknowledgment) update in place.
"""
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from hunt_guard.db.database import SessionLocal
from hunt_guard.db.models import (
    FlaggedSubmissionRecord, SecurityAlertRecord, SecurityEventRecord
)
from hunt_guard.schemas.security import FlaggedSubmission, SecurityAlert, SecurityEvent

logger = logging.getLogger(__name__)


class SecurityAuditStore:
    """SQLAlchemy-backed audit trail for the security monitor"""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def save_event(self, event: SecurityEvent) -> bool:
        db = self.session_factory()
        try:
            record = db.get(SecurityEventRecord, event.id) or SecurityEventRecord(id=event.id)
            record.event_type = event.type_value
            record.severity = event.severity.value
            record.user_id = event.user_id
            record.challenge_id = event.challenge_id
            record.submission_id = event.submission_id
            record.description = event.description
            record.event_metadata = event.metadata
            record.occurred_at = event.timestamp
            record.resolved = event.resolved
            record.resolved_by = event.resolved_by
            record.resolved_at = event.resolved_at
            record.resolution_notes = event.resolution_notes
            db.add(record)
            db.commit()
            return True
        except Exception as e:
            db.rollback()
            logger.error(f"Error saving security event {event.id}: {e}")
            return False
        finally:
            db.close()

    def save_flag(self, flagged: FlaggedSubmission) -> bool:
        db = self.session_factory()
        try:
            record = (
                db.get(FlaggedSubmissionRecord, flagged.submission_id)
                or FlaggedSubmissionRecord(submission_id=flagged.submission_id)
            )
            record.user_id = flagged.user_id
            record.challenge_id = flagged.challenge_id
            record.flag_reason = flagged.flag_reason
            record.severity = flagged.severity.value
            record.indicators = list(flagged.indicators)
            record.score = flagged.score
            record.flag_metadata = flagged.metadata
            record.flagged_at = flagged.flagged_at
            record.review_status = flagged.review_status.value
            record.reviewed_by = flagged.reviewed_by
            record.reviewed_at = flagged.reviewed_at
            record.review_notes = flagged.review_notes
            record.review_history = [
                r.model_dump(mode="json") for r in flagged.review_history
            ]
            db.add(record)
            db.commit()
            return True
        except Exception as e:
            db.rollback()
            logger.error(f"Error saving flagged submission {flagged.submission_id}: {e}")
            return False
        finally:
            db.close()

    def save_alert(self, alert: SecurityAlert) -> bool:
        db = self.session_factory()
        try:
            record = db.get(SecurityAlertRecord, alert.id) or SecurityAlertRecord(id=alert.id)
            record.rule = alert.rule
            record.alert_type = alert.type.value
            record.title = alert.title
            record.description = alert.description
            record.severity = alert.severity.value
            record.triggered_at = alert.triggered_at
            record.related_events = list(alert.related_events)
            record.suggested_actions = list(alert.suggested_actions)
            record.action_required = alert.action_required
            record.acknowledged = alert.acknowledged
            record.acknowledged_by = alert.acknowledged_by
            record.acknowledged_at = alert.acknowledged_at
            db.add(record)
            db.commit()
            return True
        except Exception as e:
            db.rollback()
            logger.error(f"Error saving security alert {alert.id}: {e}")
            return False
        finally:
            db.close()

    def get_user_events(self, user_id: str, limit: int = 20) -> List[SecurityEventRecord]:
        """Persisted events for a user, newest first"""
        db = self.session_factory()
        try:
            return (
                db.query(SecurityEventRecord)
                .filter(SecurityEventRecord.user_id == user_id)
                .order_by(SecurityEventRecord.occurred_at.desc())
                .limit(limit)
                .all()
            )
        finally:
            db.close()

    def get_flag(self, submission_id: str) -> Optional[FlaggedSubmissionRecord]:
        db = self.session_factory()
        try:
            return db.get(FlaggedSubmissionRecord, submission_id)
        finally:
            db.close()
