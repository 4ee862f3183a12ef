"""Data model for course calculations and the messages derived from them.

Course results are pydantic models serialised with camelCase aliases so
they can be published as-is under ``navigation.course.calcValues``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from course_data.geodesy import LatLon


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class CalcMethod(str, Enum):
    """Course calculation method."""

    GREAT_CIRCLE = "GreatCircle"
    RHUMBLINE = "Rhumbline"


class WatchEventKind(str, Enum):
    """Threshold watcher transition direction."""

    ENTER = "enter"
    EXIT = "exit"


class AlarmState(str, Enum):
    """Notification severity."""

    NOMINAL = "nominal"
    NORMAL = "normal"
    ALERT = "alert"
    WARN = "warn"
    ALARM = "alarm"
    EMERGENCY = "emergency"


class AlarmMethod(str, Enum):
    """How a notification should be presented."""

    VISUAL = "visual"
    SOUND = "sound"


# ---------------------------------------------------------------------------
# Computation input
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NavigationSnapshot:
    """Navigation inputs for one course computation.

    Angles (magnetic variation, heading) are radians, speed over ground is
    knots. Any field may be None.
    """

    position: Optional[LatLon] = None
    destination: Optional[LatLon] = None
    start_point: Optional[LatLon] = None
    magnetic_variation: Optional[float] = None
    heading_true: Optional[float] = None
    speed_over_ground: Optional[float] = None
    timestamp: Optional[datetime] = None
    target_arrival_time: Optional[datetime] = None


@dataclass(frozen=True)
class WatchEvent:
    """A threshold watcher state transition."""

    kind: WatchEventKind
    value: float
    range_min: float
    range_max: float


# ---------------------------------------------------------------------------
# Computation output
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class PreviousPoint(_CamelModel):
    """Values relative to the route start point."""

    distance: Optional[float] = None


class CourseResult(_CamelModel):
    """Course values computed by one method (great circle or rhumbline)."""

    calc_method: Optional[CalcMethod] = None
    bearing_track_true: Optional[float] = None
    bearing_track_magnetic: Optional[float] = None
    cross_track_error: Optional[float] = None
    distance: Optional[float] = None
    bearing_true: Optional[float] = None
    bearing_magnetic: Optional[float] = None
    velocity_made_good: Optional[float] = None
    time_to_go: Optional[float] = None
    estimated_time_of_arrival: Optional[str] = None
    target_speed: Optional[float] = None
    previous_point: PreviousPoint = Field(default_factory=PreviousPoint)

    @classmethod
    def empty(cls, method: Optional[CalcMethod] = None) -> CourseResult:
        """Return the all-null result shape."""
        return cls(calc_method=method)

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class DualCourseResult(_CamelModel):
    """Great-circle and rhumbline results computed from one snapshot."""

    gc: CourseResult = Field(
        default_factory=lambda: CourseResult.empty(CalcMethod.GREAT_CIRCLE)
    )
    rl: CourseResult = Field(
        default_factory=lambda: CourseResult.empty(CalcMethod.RHUMBLINE)
    )
    cross_track_error: Optional[float] = None
    passed_perpendicular: bool = False

    @classmethod
    def inactive(cls) -> DualCourseResult:
        """Return the canonical "no active destination" result."""
        return cls()

    @property
    def active(self) -> bool:
        """Whether the result describes an active destination."""
        return self.gc.distance is not None

    def select(self, method: CalcMethod) -> CourseResult:
        """Return the branch for the given calculation method."""
        return self.rl if method == CalcMethod.RHUMBLINE else self.gc


# ---------------------------------------------------------------------------
# Host messages
# ---------------------------------------------------------------------------

class DeltaValue(BaseModel):
    """A single path/value pair."""

    path: str
    value: Any = None


class Update(BaseModel):
    """One update block within a delta."""

    values: list[DeltaValue] = Field(default_factory=list)
    timestamp: Optional[str] = None


class DeltaUpdate(BaseModel):
    """Delta message envelope published to clients."""

    updates: list[Update] = Field(default_factory=list)

    def to_json_str(self) -> str:
        """Serialize to a JSON string for transmission."""
        return self.model_dump_json()


class NotificationValue(BaseModel):
    """Value of a notifications.* path."""

    state: AlarmState
    method: list[AlarmMethod] = Field(default_factory=list)
    message: str = ""
