"""
Geo Service - great-circle distance and travel speed between GPS fixes
"""
import math
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from hunt_guard.schemas.submission import GPSCoordinate

EARTH_RADIUS_M = 6371000.0

# Accuracy beyond this is treated as a broken fix rather than a poor one
MAX_REPORTED_ACCURACY_M = 10000.0


class LocationCheck(BaseModel):
    is_valid: bool
    distance: float
    accuracy: Optional[float] = None


def haversine_distance_m(a: GPSCoordinate, b: GPSCoordinate) -> float:
    """Calculate distance between two GPS coordinates in metres."""
    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)
    delta_lat = math.radians(b.latitude - a.latitude)
    delta_lon = math.radians(b.longitude - a.longitude)

    h = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) *
         math.sin(delta_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_M * c


def elapsed_seconds(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    if start is None or end is None:
        return None
    return abs((end - start).total_seconds())


def travel_speed_kmh(
    a: GPSCoordinate,
    b: GPSCoordinate,
    elapsed: Optional[float] = None
) -> Optional[float]:
    """
    Implied travel speed between two fixes in km/h.

    ``elapsed`` (seconds) overrides the fix timestamps. Returns None when no
    elapsed time is available or it is zero.
    """
    if elapsed is None:
        elapsed = elapsed_seconds(a.timestamp, b.timestamp)
    if not elapsed:
        return None

    distance_km = haversine_distance_m(a, b) / 1000.0
    return distance_km / (elapsed / 3600.0)


def validate_coordinate(coordinate: GPSCoordinate) -> List[str]:
    """Return a list of problems with a fix; empty when usable."""
    errors = []

    if not math.isfinite(coordinate.latitude) or not math.isfinite(coordinate.longitude):
        errors.append("Coordinates must be valid numbers")
        return errors

    if coordinate.latitude < -90 or coordinate.latitude > 90:
        errors.append("Latitude must be between -90 and 90 degrees")
    if coordinate.longitude < -180 or coordinate.longitude > 180:
        errors.append("Longitude must be between -180 and 180 degrees")

    if coordinate.accuracy is not None:
        if coordinate.accuracy < 0:
            errors.append("GPS accuracy must be a positive number")
        elif coordinate.accuracy > MAX_REPORTED_ACCURACY_M:
            errors.append("GPS accuracy seems unreasonably high (>10km)")

    return errors


def verify_within_radius(
    user_location: GPSCoordinate,
    target: GPSCoordinate,
    radius_m: float
) -> LocationCheck:
    distance = haversine_distance_m(user_location, target)
    return LocationCheck(
        is_valid=distance <= radius_m,
        distance=distance,
        accuracy=user_location.accuracy
    )


def format_distance(distance_m: float) -> str:
    if distance_m < 1000:
        return f"{round(distance_m)}m"
    if distance_m < 10000:
        return f"{distance_m / 1000:.1f}km"
    return f"{round(distance_m / 1000)}km"
