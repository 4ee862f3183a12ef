"""Latest-value store for the navigation paths the course engine consumes.

Values arrive in feed units (radians, m/s, ISO timestamps, position
objects) and are converted into a NavigationSnapshot on demand.
"""

from __future__ import annotations

import logging
import math
import threading
from datetime import datetime, timezone
from typing import Any, Optional

from course_data.geodesy import LatLon
from course_data.models import NavigationSnapshot

logger = logging.getLogger(__name__)

# Conversion factor: m/s → knots
MPS_TO_KNOTS = 1.0 / 0.514444

POSITION = "navigation.position"
NEXT_POINT_POSITION = "navigation.course.nextPoint.position"
PREVIOUS_POINT_POSITION = "navigation.course.previousPoint.position"
ARRIVAL_CIRCLE = "navigation.course.nextPoint.arrivalCircle"
MAGNETIC_VARIATION = "navigation.magneticVariation"
HEADING_TRUE = "navigation.headingTrue"
SPEED_OVER_GROUND = "navigation.speedOverGround"
DATETIME = "navigation.datetime"
TARGET_ARRIVAL_TIME = "navigation.course.targetArrivalTime"

SOURCE_PATHS = (
    ARRIVAL_CIRCLE,
    NEXT_POINT_POSITION,
    PREVIOUS_POINT_POSITION,
    POSITION,
    MAGNETIC_VARIATION,
    HEADING_TRUE,
    SPEED_OVER_GROUND,
    DATETIME,
    TARGET_ARRIVAL_TIME,
)

COURSE = "navigation.course"


def to_latlon(value: Any) -> Optional[LatLon]:
    """Convert a {latitude, longitude} object to LatLon, or None."""
    if not isinstance(value, dict):
        return None
    lat = _finite(value.get("latitude"))
    lon = _finite(value.get("longitude"))
    if lat is None or lon is None:
        return None
    return LatLon(latitude=lat, longitude=lon)


def to_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, or None."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Invalid timestamp: %s", value)
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _finite(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


class NavigationState:
    """Thread-safe store of the latest value for each source path."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, Any] = {path: None for path in SOURCE_PATHS}

    def update(self, path: str, value: Any) -> bool:
        """Store a path value.

        A whole ``navigation.course`` object is flattened into its
        nextPoint / previousPoint / targetArrivalTime members.

        Returns:
            True if the update should trigger a course computation
            (the vessel position changed).
        """
        if path == COURSE:
            course = value if isinstance(value, dict) else {}
            next_point = course.get("nextPoint")
            if not isinstance(next_point, dict):
                next_point = {}
            previous_point = course.get("previousPoint")
            if not isinstance(previous_point, dict):
                previous_point = {}
            with self._lock:
                self._values[NEXT_POINT_POSITION] = next_point.get("position")
                self._values[ARRIVAL_CIRCLE] = next_point.get("arrivalCircle")
                self._values[PREVIOUS_POINT_POSITION] = previous_point.get("position")
                self._values[TARGET_ARRIVAL_TIME] = course.get("targetArrivalTime")
            return False

        if path not in self._values:
            logger.debug("Ignoring unsubscribed path: %s", path)
            return False

        with self._lock:
            self._values[path] = value
        return path == POSITION

    def get(self, path: str) -> Any:
        with self._lock:
            return self._values.get(path)

    def as_dict(self) -> dict[str, Any]:
        """Return a copy of the current path values."""
        with self._lock:
            return dict(self._values)

    @property
    def has_position(self) -> bool:
        return to_latlon(self.get(POSITION)) is not None

    @property
    def arrival_circle(self) -> Optional[float]:
        return _finite(self.get(ARRIVAL_CIRCLE))

    def snapshot(self) -> NavigationSnapshot:
        """Build a NavigationSnapshot from the current values."""
        values = self.as_dict()
        sog_mps = _finite(values[SPEED_OVER_GROUND])
        return NavigationSnapshot(
            position=to_latlon(values[POSITION]),
            destination=to_latlon(values[NEXT_POINT_POSITION]),
            start_point=to_latlon(values[PREVIOUS_POINT_POSITION]),
            magnetic_variation=_finite(values[MAGNETIC_VARIATION]),
            heading_true=_finite(values[HEADING_TRUE]),
            speed_over_ground=sog_mps * MPS_TO_KNOTS if sog_mps is not None else None,
            timestamp=to_datetime(values[DATETIME]),
            target_arrival_time=to_datetime(values[TARGET_ARRIVAL_TIME]),
        )
