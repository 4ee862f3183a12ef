"""Course computation engine.

Turns a NavigationSnapshot into great-circle and rhumbline course values
(bearings, cross-track error, distances, VMG, time-to-go, ETA) plus a flag
telling whether the vessel has passed the line through the destination
perpendicular to the track.

Bearings are in radians, distances in meters, time-to-go in seconds and VMG
in knots (the provider publishes it in m/s).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from course_data import geodesy
from course_data.geodesy import LatLon, to_radians
from course_data.models import (
    CalcMethod,
    CourseResult,
    DualCourseResult,
    NavigationSnapshot,
    PreviousPoint,
)

logger = logging.getLogger(__name__)

# Conversion factor: knots → m/s
KNOTS_TO_MPS = 0.514444

# Consecutive incomplete snapshots tolerated before results are invalidated
DEFAULT_MAX_STALE_COUNT = 20

# Longitude beyond which the passage vectors are unwrapped across 180°
ANTIMERIDIAN_UNWRAP_DEG = 170.0

PERPENDICULAR_ANGLE_DEG = 90.0


def _number(value: object) -> Optional[float]:
    """Return value as a finite float, or None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def format_instant(ts: datetime) -> str:
    """Format an instant as ISO-8601 UTC with milliseconds, e.g. 2024-05-01T12:00:00.000Z."""
    return _utc(ts).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Derived quantities
# ---------------------------------------------------------------------------

def velocity_made_good(
    bearing_true: float,
    heading_true: Optional[float],
    speed_over_ground: Optional[float],
) -> Optional[float]:
    """Speed component toward the destination bearing.

    Args:
        bearing_true: Bearing to the destination (radians).
        heading_true: Vessel true heading (radians).
        speed_over_ground: Speed over ground (knots).

    Returns:
        VMG in knots, or None if heading or speed is unknown.
    """
    heading = _number(heading_true)
    sog = _number(speed_over_ground)
    if heading is None or sog is None:
        return None
    return math.cos(bearing_true - heading) * sog


def time_to_go(
    distance: Optional[float],
    vmg: Optional[float],
    now: datetime,
) -> tuple[Optional[float], Optional[str]]:
    """Time to go (seconds) and ETA at the given distance and VMG.

    A zero VMG is treated like a missing one: both values are None.
    """
    dist = _number(distance)
    if dist is None or not vmg:
        return None, None

    ttg_ms = math.floor((dist / (vmg * KNOTS_TO_MPS)) * 1000)
    try:
        eta = _utc(now) + timedelta(milliseconds=ttg_ms)
    except OverflowError:
        # VMG close to zero puts the ETA outside the representable range
        return ttg_ms / 1000, None
    return ttg_ms / 1000, format_instant(eta)


def target_speed(
    distance: Optional[float],
    target_arrival_time: Optional[datetime],
    now: datetime,
) -> Optional[float]:
    """Speed (m/s) required to cover distance by the target arrival time."""
    dist = _number(distance)
    if dist is None or target_arrival_time is None:
        return None
    remaining_s = (_utc(target_arrival_time) - _utc(now)).total_seconds()
    if remaining_s <= 0:
        return None
    return dist / remaining_s


def _unwrapped_lon_delta(origin_lon: float, lon: float) -> float:
    """Longitude difference lon - origin_lon (degrees), unwrapped near 180°."""
    if origin_lon > ANTIMERIDIAN_UNWRAP_DEG and lon < 0:
        lon += 360.0
    elif lon > ANTIMERIDIAN_UNWRAP_DEG and origin_lon < 0:
        origin_lon += 360.0
    elif origin_lon < -ANTIMERIDIAN_UNWRAP_DEG and lon > 0:
        lon -= 360.0
    elif lon < -ANTIMERIDIAN_UNWRAP_DEG and origin_lon > 0:
        origin_lon -= 360.0
    return lon - origin_lon


def passed_perpendicular(
    position: LatLon, destination: LatLon, start_point: LatLon
) -> bool:
    """Whether position lies beyond the destination's perpendicular line.

    Uses flat (lon, lat) degree vectors from the destination to the vessel
    and to the start point; the vessel has passed when the angle between
    them exceeds 90°.
    """
    vx = _unwrapped_lon_delta(destination.longitude, position.longitude)
    vy = position.latitude - destination.latitude
    sx = _unwrapped_lon_delta(destination.longitude, start_point.longitude)
    sy = start_point.latitude - destination.latitude

    norm = math.hypot(vx, vy) * math.hypot(sx, sy)
    if norm == 0:
        return False
    cos_angle = max(-1.0, min(1.0, (vx * sx + vy * sy) / norm))
    return math.degrees(math.acos(cos_angle)) > PERPENDICULAR_ANGLE_DEG


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _MethodOps:
    """Bearing/distance primitives for one calculation method."""

    method: CalcMethod
    bearing: Callable[[LatLon, LatLon], float]
    distance: Callable[[LatLon, LatLon], float]


_GREAT_CIRCLE = _MethodOps(
    method=CalcMethod.GREAT_CIRCLE,
    bearing=geodesy.initial_bearing,
    distance=geodesy.distance,
)

_RHUMBLINE = _MethodOps(
    method=CalcMethod.RHUMBLINE,
    bearing=geodesy.rhumb_bearing,
    distance=geodesy.rhumb_distance,
)


def has_required_inputs(snapshot: NavigationSnapshot) -> bool:
    """Whether the snapshot holds vessel position, destination and start point."""
    return (
        snapshot.position is not None
        and snapshot.destination is not None
        and snapshot.start_point is not None
    )


class CourseComputer:
    """Computes dual course results and debounces loss of destination.

    Each instance owns its staleness counter; confine one instance to one
    worker so calls are strictly sequenced.
    """

    def __init__(self, max_stale_count: int = DEFAULT_MAX_STALE_COUNT) -> None:
        self.max_stale_count = max_stale_count
        self._stale_count = 0
        self._active = False

    @property
    def stale_count(self) -> int:
        """Consecutive incomplete snapshots seen since the last valid one."""
        return self._stale_count

    @property
    def active(self) -> bool:
        """Whether the last published result had an active destination."""
        return self._active

    def process(self, snapshot: NavigationSnapshot) -> Optional[DualCourseResult]:
        """Compute a result to publish, or None when nothing should be published.

        Incomplete snapshots are counted; after more than max_stale_count of
        them in a row, a single inactive result is returned to invalidate
        previously published values.
        """
        if has_required_inputs(snapshot):
            self._stale_count = 0
            self._active = True
            return self.compute(snapshot)

        self._stale_count += 1
        if self._active and self._stale_count > self.max_stale_count:
            logger.info(
                "No destination for %d updates, invalidating course values",
                self._stale_count,
            )
            self._stale_count = 0
            self._active = False
            return DualCourseResult.inactive()
        return None

    def compute(self, snapshot: NavigationSnapshot) -> DualCourseResult:
        """Compute great-circle and rhumbline course values.

        Raises:
            TypeError: If snapshot is not a NavigationSnapshot.
        """
        if not isinstance(snapshot, NavigationSnapshot):
            raise TypeError(
                f"expected NavigationSnapshot, got {type(snapshot).__name__}"
            )
        if not has_required_inputs(snapshot):
            return DualCourseResult.inactive()

        position = snapshot.position
        destination = snapshot.destination
        start_point = snapshot.start_point
        now = snapshot.timestamp or datetime.now(timezone.utc)

        xte = position.cross_track_distance_to(start_point, destination)
        passed = passed_perpendicular(position, destination, start_point)

        gc = self._branch(_GREAT_CIRCLE, snapshot, xte, now)
        rl = self._branch(_RHUMBLINE, snapshot, xte, now)
        logger.debug(
            "Course computed: gc=%.1fm rl=%.1fm xte=%.1fm passed=%s",
            gc.distance,
            rl.distance,
            xte,
            passed,
        )
        return DualCourseResult(
            gc=gc,
            rl=rl,
            cross_track_error=xte,
            passed_perpendicular=passed,
        )

    @staticmethod
    def _branch(
        ops: _MethodOps,
        snapshot: NavigationSnapshot,
        xte: float,
        now: datetime,
    ) -> CourseResult:
        """Course values for one method, sharing the precomputed XTE."""
        position = snapshot.position
        destination = snapshot.destination
        start_point = snapshot.start_point

        bearing_track_true = to_radians(ops.bearing(start_point, destination))
        bearing_true = to_radians(ops.bearing(position, destination))

        variation = _number(snapshot.magnetic_variation)
        bearing_track_magnetic = None
        bearing_magnetic = None
        if variation is not None:
            bearing_track_magnetic = bearing_track_true - variation
            bearing_magnetic = bearing_true - variation

        distance = ops.distance(position, destination)
        vmg = velocity_made_good(
            bearing_true, snapshot.heading_true, snapshot.speed_over_ground
        )
        ttg, eta = time_to_go(distance, vmg, now)

        return CourseResult(
            calc_method=ops.method,
            bearing_track_true=bearing_track_true,
            bearing_track_magnetic=bearing_track_magnetic,
            cross_track_error=xte,
            distance=distance,
            bearing_true=bearing_true,
            bearing_magnetic=bearing_magnetic,
            velocity_made_good=vmg,
            time_to_go=ttg,
            estimated_time_of_arrival=eta,
            target_speed=target_speed(distance, snapshot.target_arrival_time, now),
            previous_point=PreviousPoint(
                distance=ops.distance(position, start_point)
            ),
        )
