"""
API routers package
"""
from hunt_guard.api import (
    system,
    submissions,
    security
)

__all__ = [
    "system",
    "submissions",
    "security"
]
