"""
SQLAlchemy ORM models for the security audit trail
"""
from sqlalchemy import (
    Column, String, Text, Float, Boolean, DateTime, JSON, Index
)
from sqlalchemy.sql import func
from hunt_guard.db.database import Base


class SecurityEventRecord(Base):
    """Append-only log of security events"""
    __tablename__ = "security_events"

    id = Column(String(64), primary_key=True)
    event_type = Column(String(50), nullable=False)
    severity = Column(String(20), nullable=False)
    user_id = Column(String(100), nullable=False)
    challenge_id = Column(String(100))
    submission_id = Column(String(100))
    description = Column(Text, nullable=False)
    event_metadata = Column("metadata", JSON, default=dict)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    # Resolution
    resolved = Column(Boolean, default=False)
    resolved_by = Column(String(100))
    resolved_at = Column(DateTime(timezone=True))
    resolution_notes = Column(Text)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_security_events_user", "user_id"),
        Index("idx_security_events_type_time", "event_type", "occurred_at"),
    )


class FlaggedSubmissionRecord(Base):
    """Submissions queued for human review"""
    __tablename__ = "flagged_submissions"

    submission_id = Column(String(100), primary_key=True)
    user_id = Column(String(100), nullable=False)
    challenge_id = Column(String(100))
    flag_reason = Column(Text, nullable=False)
    severity = Column(String(20), nullable=False)
    indicators = Column(JSON, default=list)
    score = Column(Float, default=0.0)
    flag_metadata = Column("metadata", JSON, default=dict)
    flagged_at = Column(DateTime(timezone=True), nullable=False)
    # Review
    review_status = Column(String(20), nullable=False, default="pending")
    reviewed_by = Column(String(100))
    reviewed_at = Column(DateTime(timezone=True))
    review_notes = Column(Text)
    review_history = Column(JSON, default=list)

    __table_args__ = (
        Index("idx_flagged_submissions_status", "review_status"),
    )


class SecurityAlertRecord(Base):
    """Threshold alerts raised from the event log"""
    __tablename__ = "security_alerts"

    id = Column(String(64), primary_key=True)
    rule = Column(String(50), nullable=False)
    alert_type = Column(String(30), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    severity = Column(String(20), nullable=False)
    triggered_at = Column(DateTime(timezone=True), nullable=False)
    related_events = Column(JSON, default=list)
    suggested_actions = Column(JSON, default=list)
    action_required = Column(Boolean, default=True)
    # Acknowledgment
    acknowledged = Column(Boolean, default=False)
    acknowledged_by = Column(String(100))
    acknowledged_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_security_alerts_rule", "rule"),
    )
