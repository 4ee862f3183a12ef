"""
Tests for the threshold watcher.
"""

import unittest

from course_data.models import WatchEvent, WatchEventKind
from course_data.watcher import Watcher


class TestTransitions(unittest.TestCase):
    """Enter/exit events on range membership changes."""

    def setUp(self):
        self.watcher = Watcher(0.0, 10.0)

    def test_initially_outside(self):
        self.assertFalse(self.watcher.inside)
        self.assertIsNone(self.watcher.value)

    def test_enter_then_no_repeat(self):
        event = self.watcher.observe(5.0)
        self.assertEqual(event, WatchEvent(WatchEventKind.ENTER, 5.0, 0.0, 10.0))
        self.assertIsNone(self.watcher.observe(6.0))
        self.assertIsNone(self.watcher.observe(0.0))
        self.assertTrue(self.watcher.inside)

    def test_outside_observations_are_silent(self):
        self.assertIsNone(self.watcher.observe(-1.0))
        self.assertIsNone(self.watcher.observe(20.0))

    def test_upper_bound_is_exclusive(self):
        self.watcher.observe(5.0)
        event = self.watcher.observe(10.0)
        self.assertEqual(event.kind, WatchEventKind.EXIT)
        self.assertEqual(event.value, 10.0)

    def test_alternating_crossings(self):
        kinds = [
            e.kind
            for e in map(self.watcher.observe, [1, 2, 11, 12, 3, 3, 15])
            if e is not None
        ]
        self.assertEqual(
            kinds,
            [WatchEventKind.ENTER, WatchEventKind.EXIT, WatchEventKind.ENTER, WatchEventKind.EXIT],
        )

    def test_set_range_does_not_emit(self):
        self.watcher.observe(5.0)
        self.watcher.set_range(0.0, 3.0)
        self.assertTrue(self.watcher.inside)
        event = self.watcher.observe(5.0)
        self.assertEqual(event.kind, WatchEventKind.EXIT)
        self.assertEqual(event.range_max, 3.0)

    def test_direct_attribute_update(self):
        self.watcher.range_max = 100.0
        self.assertEqual(self.watcher.observe(50.0).kind, WatchEventKind.ENTER)


class TestReset(unittest.TestCase):
    """Forced exit."""

    def test_reset_when_inside(self):
        watcher = Watcher(0.0, 10.0)
        watcher.observe(4.0)
        event = watcher.reset()
        self.assertEqual(event.kind, WatchEventKind.EXIT)
        self.assertEqual(event.value, 4.0)
        self.assertFalse(watcher.inside)

    def test_reset_when_outside(self):
        self.assertIsNone(Watcher(0.0, 10.0).reset())

    def test_enter_again_after_reset(self):
        watcher = Watcher(0.0, 10.0)
        watcher.observe(4.0)
        watcher.reset()
        self.assertEqual(watcher.observe(4.0).kind, WatchEventKind.ENTER)


class TestScenarios(unittest.TestCase):
    """The arrival and perpendicular-passage configurations."""

    def test_arrival_circle(self):
        watcher = Watcher(name="arrival")
        watcher.set_range(0.0, 100.0)
        enter = watcher.observe(50.0)
        self.assertEqual(enter.kind, WatchEventKind.ENTER)
        self.assertEqual(enter.value, 50.0)

        watcher.set_range(0.0, 100.0)
        exit_ = watcher.observe(150.0)
        self.assertEqual(exit_.kind, WatchEventKind.EXIT)
        self.assertEqual(exit_.value, 150.0)

    def test_passage_flag(self):
        watcher = Watcher(1.0, 2.0, name="passed")
        self.assertIsNone(watcher.observe(0.0))
        self.assertEqual(watcher.observe(1.0).kind, WatchEventKind.ENTER)
        self.assertIsNone(watcher.observe(1.0))
        self.assertEqual(watcher.observe(0.0).kind, WatchEventKind.EXIT)


class TestListeners(unittest.TestCase):
    """Listener notification."""

    def test_listener_receives_events(self):
        watcher = Watcher(0.0, 10.0)
        received = []
        watcher.subscribe(received.append)
        watcher.observe(5.0)
        watcher.observe(6.0)
        watcher.observe(50.0)
        self.assertEqual([e.kind for e in received], [WatchEventKind.ENTER, WatchEventKind.EXIT])

    def test_unsubscribe(self):
        watcher = Watcher(0.0, 10.0)
        received = []
        unsubscribe = watcher.subscribe(received.append)
        unsubscribe()
        unsubscribe()
        watcher.observe(5.0)
        self.assertEqual(received, [])

    def test_failing_listener_does_not_break_watcher(self):
        watcher = Watcher(0.0, 10.0)
        received = []

        def broken(event):
            raise RuntimeError("boom")

        watcher.subscribe(broken)
        watcher.subscribe(received.append)
        with self.assertLogs("course_data.watcher", level="ERROR"):
            event = watcher.observe(5.0)
        self.assertEqual(event.kind, WatchEventKind.ENTER)
        self.assertEqual(len(received), 1)
        self.assertTrue(watcher.inside)


if __name__ == "__main__":
    unittest.main()
