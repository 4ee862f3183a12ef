"""Course provider: wires the navigation state, engine, watchers and output.

Feed updates go into a NavigationState; a vessel position update triggers
a course computation (in the background worker when one is running,
inline otherwise). Each result is published as a calc-values delta and
drives the arrival and perpendicular-passage watchers, whose transitions
become notification deltas.

The engine works in knots; published VMG is converted back to the feed's
m/s like every other speed on the feed.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from course_data.config import CourseSettings
from course_data.course import KNOTS_TO_MPS, CourseComputer, format_instant
from course_data.message_parser import PathValue
from course_data.models import (
    CalcMethod,
    CourseResult,
    DeltaUpdate,
    DeltaValue,
    DualCourseResult,
    Update,
    WatchEvent,
    WatchEventKind,
)
from course_data.nav_state import NavigationState
from course_data.notifications import (
    ARRIVAL_CIRCLE_ENTERED,
    PERPENDICULAR_PASSED,
    alarm_methods,
    build_notification,
)
from course_data.watcher import Watcher
from course_data.worker import CourseWorker

logger = logging.getLogger(__name__)

CALC_VALUES_PATH = "navigation.course.calcValues"
AUTOPILOT_TARGET_PATH = "steering.autopilot.target"

Publisher = Callable[[DeltaUpdate], None]


class CourseProvider:
    """Orchestrates course computations for one vessel.

    Attributes:
        state: Latest navigation feed values.
        computer: The course engine (owns the staleness counter).
        watch_arrival: Watches GC distance against the arrival circle.
        watch_passed: Watches the perpendicular-passage flag (0/1).
    """

    def __init__(self, settings: CourseSettings, publish: Publisher) -> None:
        self.settings = settings
        self._publish = publish

        self.state = NavigationState()
        self.computer = CourseComputer(max_stale_count=settings.max_stale_count)
        self.watch_arrival = Watcher(0.0, 0.0, name="arrival")
        self.watch_passed = Watcher(1.0, 2.0, name="passed-perpendicular")
        self.watch_arrival.subscribe(self._on_arrival_event)
        self.watch_passed.subscribe(self._on_passed_event)

        self._worker: Optional[CourseWorker] = None
        self._lock = threading.Lock()
        self._seq = 0
        self._applied_seq = 0
        self._result: Optional[DualCourseResult] = None

        # Counters
        self.results_applied = 0
        self.results_superseded = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_worker(self) -> None:
        """Run computations in a background worker from now on."""
        if self._worker is not None:
            return
        self._worker = CourseWorker(self.computer, self.apply_result)
        self._worker.start()

    def stop_worker(self) -> None:
        if self._worker is None:
            return
        self._worker.stop()
        self._worker = None

    @property
    def worker(self) -> Optional[CourseWorker]:
        return self._worker

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def handle_delta(self, values: Iterable[PathValue]) -> None:
        """Apply feed updates, computing when the vessel position changed."""
        trigger = False
        for pv in values:
            if self.state.update(pv.path, pv.value):
                trigger = True
        if trigger and self.state.has_position:
            self.request_computation()

    def request_computation(self) -> int:
        """Compute from the current navigation state.

        Returns:
            The request sequence number.
        """
        snapshot = self.state.snapshot()
        with self._lock:
            self._seq += 1
            seq = self._seq
        logger.debug("Course calculation %d requested", seq)

        worker = self._worker
        if worker is not None:
            worker.submit(seq, snapshot)
            return seq

        result = self.computer.process(snapshot)
        if result is not None:
            self.apply_result(seq, result)
        return seq

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def apply_result(self, seq: int, result: DualCourseResult) -> bool:
        """Publish a computation result unless a newer one was already applied.

        Returns:
            True if the result was applied.
        """
        with self._lock:
            if seq <= self._applied_seq:
                self.results_superseded += 1
                logger.debug("Dropping superseded result %d", seq)
                return False
            self._applied_seq = seq
            self._result = result
            self.results_applied += 1

            self._publish(self.build_delta(result))
            self._update_watchers(result)
        return True

    @property
    def result(self) -> Optional[DualCourseResult]:
        """The latest applied result."""
        return self._result

    def current(self, method: Optional[CalcMethod] = None) -> Optional[CourseResult]:
        """Selected branch of the latest result, or None without a destination."""
        result = self._result
        if result is None or not result.active:
            return None
        return _in_feed_units(result.select(method or self.settings.calc_method))

    def build_delta(self, result: DualCourseResult) -> DeltaUpdate:
        """Build the calc-values delta for the configured method."""
        source = _in_feed_units(result.select(self.settings.calc_method))
        autopilot = self.settings.autopilot

        def calc(name: str, value: object) -> DeltaValue:
            return DeltaValue(path=f"{CALC_VALUES_PATH}.{name}", value=value)

        values = [
            calc("calcMethod", source.calc_method.value if source.calc_method else None),
            calc("bearingTrackTrue", source.bearing_track_true),
            calc("bearingTrackMagnetic", source.bearing_track_magnetic),
            calc("crossTrackError", source.cross_track_error),
            calc("previousPoint.distance", source.previous_point.distance),
            calc("distance", source.distance),
            calc("bearingTrue", source.bearing_true),
        ]
        if autopilot:
            values.append(
                DeltaValue(
                    path=f"{AUTOPILOT_TARGET_PATH}.headingTrue",
                    value=source.bearing_true,
                )
            )
        values.append(calc("bearingMagnetic", source.bearing_magnetic))
        if autopilot:
            values.append(
                DeltaValue(
                    path=f"{AUTOPILOT_TARGET_PATH}.bearingMagnetic",
                    value=source.bearing_magnetic,
                )
            )
        values.extend(
            [
                calc("velocityMadeGood", source.velocity_made_good),
                calc("timeToGo", source.time_to_go),
                calc("estimatedTimeOfArrival", source.estimated_time_of_arrival),
                calc("targetSpeed", source.target_speed),
            ]
        )
        return _delta(values)

    # ------------------------------------------------------------------
    # Watchers
    # ------------------------------------------------------------------

    def _update_watchers(self, result: DualCourseResult) -> None:
        if not result.active:
            self.watch_arrival.reset()
            self.watch_passed.reset()
            return

        arrival_circle = self.state.arrival_circle
        distance = result.gc.distance
        if arrival_circle is None:
            self.watch_arrival.reset()
        elif distance is not None:
            self.watch_arrival.set_range(0.0, arrival_circle)
            self.watch_arrival.observe(distance)

        self.watch_passed.observe(1.0 if result.passed_perpendicular else 0.0)

    def _on_arrival_event(self, event: WatchEvent) -> None:
        logger.debug("Arrival circle event: %s", event)
        if event.kind == WatchEventKind.ENTER:
            if self.state.has_position:
                self._notify(
                    build_notification(
                        ARRIVAL_CIRCLE_ENTERED,
                        f"Entered arrival zone: {event.value:.0f}m < {event.range_max:.0f}",
                        method=alarm_methods(self.settings.notification_sound),
                    )
                )
        else:
            self._notify(build_notification(ARRIVAL_CIRCLE_ENTERED, None))

    def _on_passed_event(self, event: WatchEvent) -> None:
        logger.debug("Passed perpendicular event: %s", event)
        if event.kind == WatchEventKind.ENTER:
            if self.state.has_position:
                self._notify(
                    build_notification(PERPENDICULAR_PASSED, f"{event.value:.0f}")
                )
        else:
            self._notify(build_notification(PERPENDICULAR_PASSED, None))

    def _notify(self, notification: DeltaValue) -> None:
        logger.debug("Notification: %s", notification.path)
        self._publish(_delta([notification]))


def _in_feed_units(branch: CourseResult) -> CourseResult:
    """Branch with VMG converted from knots to m/s."""
    if branch.velocity_made_good is None:
        return branch
    return branch.model_copy(
        update={"velocity_made_good": branch.velocity_made_good * KNOTS_TO_MPS}
    )


def _delta(values: list[DeltaValue]) -> DeltaUpdate:
    return DeltaUpdate(
        updates=[
            Update(values=values, timestamp=format_instant(datetime.now(timezone.utc)))
        ]
    )
