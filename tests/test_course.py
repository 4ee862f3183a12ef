"""
Tests for the course computation engine.
"""

import math
import unittest
from datetime import datetime, timedelta, timezone

from course_data.course import (
    KNOTS_TO_MPS,
    CourseComputer,
    _unwrapped_lon_delta,
    format_instant,
    has_required_inputs,
    passed_perpendicular,
    time_to_go,
)
from course_data.geodesy import EARTH_RADIUS_M, LatLon
from course_data.models import CalcMethod, CourseResult, DualCourseResult, NavigationSnapshot

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
HALF_DEGREE_M = EARTH_RADIUS_M * math.pi / 360.0


def make_snapshot(**overrides):
    values = dict(
        position=LatLon(0, 0.5),
        destination=LatLon(0, 1),
        start_point=LatLon(0, 0),
        timestamp=T0,
    )
    values.update(overrides)
    return NavigationSnapshot(**values)


class TestMissingInputs(unittest.TestCase):
    """Snapshots without position, destination or start point."""

    def setUp(self):
        self.computer = CourseComputer()

    def test_missing_destination_gives_inactive_result(self):
        result = self.computer.compute(make_snapshot(destination=None))
        self.assertEqual(result, DualCourseResult.inactive())
        self.assertFalse(result.passed_perpendicular)
        self.assertFalse(result.active)

    def test_missing_start_point_gives_inactive_result(self):
        result = self.computer.compute(make_snapshot(start_point=None))
        self.assertEqual(result, DualCourseResult.inactive())

    def test_missing_position_gives_inactive_result(self):
        result = self.computer.compute(make_snapshot(position=None))
        self.assertEqual(result, DualCourseResult.inactive())

    def test_inactive_branches_are_all_null(self):
        result = DualCourseResult.inactive()
        for branch in (result.gc, result.rl):
            dumped = branch.to_json_dict()
            dumped.pop("calcMethod")
            self.assertEqual(dumped.pop("previousPoint"), {"distance": None})
            self.assertTrue(all(v is None for v in dumped.values()), dumped)

    def test_has_required_inputs(self):
        self.assertTrue(has_required_inputs(make_snapshot()))
        self.assertFalse(has_required_inputs(NavigationSnapshot()))

    def test_malformed_snapshot_raises_type_error(self):
        with self.assertRaises(TypeError):
            self.computer.compute({"navigation.position": None})


class TestCourseValues(unittest.TestCase):
    """Bearings, distances and XTE for a vessel on the track."""

    def setUp(self):
        self.computer = CourseComputer()

    def test_bearings_and_distances(self):
        result = self.computer.compute(make_snapshot())
        gc = result.gc
        self.assertEqual(gc.calc_method, CalcMethod.GREAT_CIRCLE)
        self.assertAlmostEqual(gc.bearing_track_true, math.pi / 2)
        self.assertAlmostEqual(gc.bearing_true, math.pi / 2)
        self.assertAlmostEqual(gc.distance, HALF_DEGREE_M, delta=0.01)
        self.assertAlmostEqual(gc.previous_point.distance, HALF_DEGREE_M, delta=0.01)
        self.assertAlmostEqual(gc.cross_track_error, 0.0, places=6)

    def test_rhumbline_branch(self):
        result = self.computer.compute(make_snapshot())
        self.assertEqual(result.rl.calc_method, CalcMethod.RHUMBLINE)
        self.assertAlmostEqual(result.rl.distance, HALF_DEGREE_M, delta=0.01)

    def test_cross_track_error_shared_between_methods(self):
        snapshot = make_snapshot(
            position=LatLon(50.2, -4.5),
            start_point=LatLon(50.0, -5.0),
            destination=LatLon(51.0, -3.0),
        )
        result = self.computer.compute(snapshot)
        self.assertNotEqual(result.gc.distance, result.rl.distance)
        self.assertEqual(result.gc.cross_track_error, result.cross_track_error)
        self.assertEqual(result.rl.cross_track_error, result.cross_track_error)

    def test_cross_track_error_sign(self):
        right = self.computer.compute(make_snapshot(position=LatLon(-0.01, 0.5)))
        left = self.computer.compute(make_snapshot(position=LatLon(0.01, 0.5)))
        self.assertGreater(right.cross_track_error, 0)
        self.assertLess(left.cross_track_error, 0)

    def test_magnetic_bearings_subtract_variation(self):
        variation = 0.1
        result = self.computer.compute(make_snapshot(magnetic_variation=variation))
        for branch in (result.gc, result.rl):
            self.assertEqual(branch.bearing_magnetic, branch.bearing_true - variation)
            self.assertEqual(
                branch.bearing_track_magnetic, branch.bearing_track_true - variation
            )

    def test_magnetic_bearings_null_without_variation(self):
        result = self.computer.compute(make_snapshot())
        for branch in (result.gc, result.rl):
            self.assertIsNone(branch.bearing_magnetic)
            self.assertIsNone(branch.bearing_track_magnetic)

    def test_non_finite_variation_treated_as_missing(self):
        result = self.computer.compute(make_snapshot(magnetic_variation=float("nan")))
        self.assertIsNone(result.gc.bearing_magnetic)

    def test_pole_destination(self):
        """Rhumb lines towards a pole stay finite."""
        for pole in (-90.0, 90.0):
            step = math.copysign(1.0, pole)
            result = self.computer.compute(
                make_snapshot(
                    position=LatLon(pole - step, 0),
                    destination=LatLon(pole, 0),
                    start_point=LatLon(pole - 2 * step, 0),
                )
            )
            self.assertTrue(result.active)
            for branch in (result.gc, result.rl):
                for value in (
                    branch.distance,
                    branch.bearing_true,
                    branch.bearing_track_true,
                    branch.previous_point.distance,
                    branch.cross_track_error,
                ):
                    self.assertTrue(math.isfinite(value))
            self.assertAlmostEqual(result.rl.distance, 2 * HALF_DEGREE_M, delta=1.0)

    def test_compute_is_repeatable(self):
        snapshot = make_snapshot(heading_true=1.5, speed_over_ground=6.0, magnetic_variation=0.05)
        self.assertEqual(self.computer.compute(snapshot), self.computer.compute(snapshot))


class TestVmgAndTime(unittest.TestCase):
    """Velocity made good, time to go and ETA."""

    def setUp(self):
        self.computer = CourseComputer()

    def test_vmg_heading_at_destination(self):
        result = self.computer.compute(
            make_snapshot(heading_true=math.pi / 2, speed_over_ground=10.0)
        )
        self.assertAlmostEqual(result.gc.velocity_made_good, 10.0)
        self.assertAlmostEqual(result.rl.velocity_made_good, 10.0)

    def test_time_to_go_and_eta(self):
        result = self.computer.compute(
            make_snapshot(heading_true=math.pi / 2, speed_over_ground=10.0)
        )
        gc = result.gc
        expected = math.floor(gc.distance / (gc.velocity_made_good * KNOTS_TO_MPS) * 1000) / 1000
        self.assertEqual(gc.time_to_go, expected)
        # ~10807 s after midnight
        self.assertTrue(gc.estimated_time_of_arrival.startswith("2024-01-01T03:00:07."))
        self.assertTrue(gc.estimated_time_of_arrival.endswith("Z"))

    def test_missing_heading_or_speed_nulls_vmg_ttg_eta(self):
        for snapshot in (
            make_snapshot(heading_true=None, speed_over_ground=10.0),
            make_snapshot(heading_true=1.0, speed_over_ground=None),
        ):
            result = self.computer.compute(snapshot)
            for branch in (result.gc, result.rl):
                self.assertIsNone(branch.velocity_made_good)
                self.assertIsNone(branch.time_to_go)
                self.assertIsNone(branch.estimated_time_of_arrival)

    def test_zero_vmg_treated_as_invalid(self):
        result = self.computer.compute(make_snapshot(heading_true=0.0, speed_over_ground=0.0))
        self.assertEqual(result.gc.velocity_made_good, 0.0)
        self.assertIsNone(result.gc.time_to_go)
        self.assertIsNone(result.gc.estimated_time_of_arrival)

    def test_moving_away_gives_negative_time(self):
        result = self.computer.compute(
            make_snapshot(heading_true=3 * math.pi / 2, speed_over_ground=5.0)
        )
        self.assertLess(result.gc.velocity_made_good, 0)
        self.assertLess(result.gc.time_to_go, 0)

    def test_time_to_go_without_distance(self):
        self.assertEqual(time_to_go(None, 5.0, T0), (None, None))
        self.assertEqual(time_to_go(float("inf"), 5.0, T0), (None, None))

    def test_tiny_vmg_keeps_time_to_go_without_eta(self):
        ttg, eta = time_to_go(1_000_000.0, 1e-12, T0)
        self.assertGreater(ttg, 0)
        self.assertIsNone(eta)

    def test_format_instant(self):
        self.assertEqual(format_instant(T0 + timedelta(milliseconds=1500)), "2024-01-01T00:00:01.500Z")


class TestTargetSpeed(unittest.TestCase):
    """Speed needed to arrive at the target time."""

    def test_target_speed(self):
        snapshot = make_snapshot(target_arrival_time=T0 + timedelta(seconds=1000))
        result = CourseComputer().compute(snapshot)
        self.assertAlmostEqual(result.gc.target_speed, result.gc.distance / 1000)
        self.assertAlmostEqual(result.rl.target_speed, result.rl.distance / 1000)

    def test_target_time_in_past(self):
        snapshot = make_snapshot(target_arrival_time=T0 - timedelta(seconds=1))
        self.assertIsNone(CourseComputer().compute(snapshot).gc.target_speed)

    def test_no_target_time(self):
        self.assertIsNone(CourseComputer().compute(make_snapshot()).gc.target_speed)


class TestPerpendicularPassage(unittest.TestCase):
    """Destination perpendicular crossing detection."""

    def test_beyond_destination_has_passed(self):
        self.assertTrue(passed_perpendicular(LatLon(0, 15), LatLon(0, 10), LatLon(0, 0)))

    def test_before_destination_has_not_passed(self):
        self.assertFalse(passed_perpendicular(LatLon(0, 5), LatLon(0, 10), LatLon(0, 0)))

    def test_abeam_of_destination_has_not_passed(self):
        """Exactly on the perpendicular (90°) is not yet passed."""
        self.assertFalse(passed_perpendicular(LatLon(1, 10), LatLon(0, 10), LatLon(0, 0)))

    def test_on_destination_has_not_passed(self):
        self.assertFalse(passed_perpendicular(LatLon(0, 10), LatLon(0, 10), LatLon(0, 0)))

    def test_antimeridian_unwrap(self):
        self.assertEqual(_unwrapped_lon_delta(179.0, -179.0), 2.0)
        self.assertEqual(_unwrapped_lon_delta(-179.0, 179.0), -2.0)
        self.assertEqual(_unwrapped_lon_delta(10.0, 15.0), 5.0)

    def test_passage_across_antimeridian(self):
        destination = LatLon(0, 179)
        start = LatLon(0, 175)
        self.assertTrue(passed_perpendicular(LatLon(0, -179), destination, start))
        self.assertFalse(passed_perpendicular(LatLon(0, 177), destination, start))

    def test_flag_in_compute(self):
        computer = CourseComputer()
        passed = computer.compute(
            make_snapshot(position=LatLon(0, 15), destination=LatLon(0, 10))
        )
        before = computer.compute(
            make_snapshot(position=LatLon(0, 5), destination=LatLon(0, 10))
        )
        self.assertTrue(passed.passed_perpendicular)
        self.assertFalse(before.passed_perpendicular)


class TestStaleness(unittest.TestCase):
    """Invalidation after the destination disappears."""

    def setUp(self):
        self.computer = CourseComputer(max_stale_count=3)
        self.stale = make_snapshot(destination=None)

    def test_valid_snapshot_is_published(self):
        result = self.computer.process(make_snapshot())
        self.assertIsNotNone(result)
        self.assertTrue(result.active)
        self.assertTrue(self.computer.active)

    def test_single_invalidation_after_threshold(self):
        self.computer.process(make_snapshot())
        outputs = [self.computer.process(self.stale) for _ in range(10)]
        self.assertEqual(outputs[:3], [None, None, None])
        self.assertEqual(outputs[3], DualCourseResult.inactive())
        self.assertEqual(outputs[4:], [None] * 6)
        self.assertFalse(self.computer.active)

    def test_no_invalidation_without_prior_destination(self):
        outputs = [self.computer.process(self.stale) for _ in range(10)]
        self.assertEqual(outputs, [None] * 10)

    def test_valid_snapshot_resets_counter(self):
        self.computer.process(make_snapshot())
        for _ in range(3):
            self.assertIsNone(self.computer.process(self.stale))
        self.assertIsNotNone(self.computer.process(make_snapshot()))
        self.assertEqual(self.computer.stale_count, 0)
        for _ in range(3):
            self.assertIsNone(self.computer.process(self.stale))
        self.assertEqual(self.computer.process(self.stale), DualCourseResult.inactive())

    def test_independent_instances(self):
        other = CourseComputer(max_stale_count=3)
        self.computer.process(make_snapshot())
        self.computer.process(self.stale)
        self.assertEqual(self.computer.stale_count, 1)
        self.assertEqual(other.stale_count, 0)


class TestSerialization(unittest.TestCase):
    """camelCase JSON shape of course results."""

    def test_json_keys(self):
        result = CourseComputer().compute(make_snapshot())
        data = result.gc.to_json_dict()
        self.assertEqual(data["calcMethod"], "GreatCircle")
        self.assertIn("bearingTrackTrue", data)
        self.assertIn("estimatedTimeOfArrival", data)
        self.assertIn("distance", data["previousPoint"])

    def test_empty_result_keeps_method(self):
        self.assertEqual(CourseResult.empty(CalcMethod.RHUMBLINE).calc_method, CalcMethod.RHUMBLINE)


if __name__ == "__main__":
    unittest.main()
