"""
System Router - Health checks
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from hunt_guard.config import settings
from hunt_guard.dependencies import get_db, get_security_monitor
from hunt_guard.services.security_monitoring_service import SecurityMonitoringService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(
    db: Session = Depends(get_db),
    monitor: SecurityMonitoringService = Depends(get_security_monitor)
):
    """
    Health check endpoint.

    The database is only probed when security persistence is enabled.
    """
    database_status = "disabled"
    if settings.SECURITY_PERSISTENCE_ENABLED:
        database_status = "unhealthy"
        try:
            db.execute(text("SELECT 1"))
            database_status = "healthy"
        except Exception as e:
            logger.error(f"Database health check failed: {e}")

    return {
        "status": "healthy",
        "database": database_status,
        "active_alerts": len(monitor.get_active_alerts()),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
