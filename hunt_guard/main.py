"""
Main FastAPI application for the Hunt Guard service
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from hunt_guard.config import settings
from hunt_guard.api import (
    system,
    submissions,
    security
)
from hunt_guard.db.audit_store import SecurityAuditStore
from hunt_guard.db.database import init_db
from hunt_guard.services.security_monitoring_service import security_monitoring_service

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.APP_DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting Hunt Guard service...")
    if settings.SECURITY_PERSISTENCE_ENABLED:
        try:
            init_db()
            security_monitoring_service.audit_store = SecurityAuditStore()
            logger.info("Security audit persistence enabled")
        except Exception as e:
            logger.error(f"Error initializing security audit store: {e}")

    yield

    # Shutdown
    logger.info("Shutting down Hunt Guard service...")
    security_monitoring_service.audit_store = None


app = FastAPI(
    title="Hunt Guard",
    description="Submission validation, fraud detection and security monitoring for location challenges",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(system.router, tags=["System"])
app.include_router(submissions.router, prefix="/submissions", tags=["Submissions"])
app.include_router(security.router, prefix="/security", tags=["Security"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Hunt Guard",
        "version": "1.0.0",
        "status": "running"
    }
