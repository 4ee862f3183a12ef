"""Background worker running the course engine off the feed thread.

Snapshots go into a single-slot mailbox: if a new snapshot arrives before
the previous one was picked up, the older one is dropped. Each request
carries the sequence number the caller assigned to it, so the consumer can
discard superseded results.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from course_data.course import CourseComputer
from course_data.models import DualCourseResult, NavigationSnapshot

logger = logging.getLogger(__name__)

ResultCallback = Callable[[int, DualCourseResult], None]


class CourseWorker:
    """Runs CourseComputer.process() in a background thread."""

    def __init__(
        self,
        computer: CourseComputer,
        on_result: ResultCallback,
        name: str = "course-worker",
    ) -> None:
        self._computer = computer
        self._on_result = on_result
        self._name = name

        self._cond = threading.Condition()
        self._pending: Optional[tuple[int, NavigationSnapshot]] = None
        self._thread: Optional[threading.Thread] = None
        self._running = False

        # Counters
        self.computations = 0
        self.dropped = 0
        self.errors = 0

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the worker thread."""
        self._running = True
        self._thread = threading.Thread(
            target=self._run_loop,
            name=self._name,
            daemon=True,
        )
        self._thread.start()
        logger.info("[%s] Started", self._name)

    def stop(self) -> None:
        """Stop the worker thread, discarding any pending request."""
        with self._cond:
            self._running = False
            self._pending = None
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
        logger.info("[%s] Stopped", self._name)

    def submit(self, seq: int, snapshot: NavigationSnapshot) -> None:
        """Queue a snapshot for computation, replacing any pending one.

        Args:
            seq: Request sequence number, handed back with the result.
            snapshot: Navigation inputs.
        """
        with self._cond:
            if self._pending is not None:
                self.dropped += 1
                logger.debug(
                    "[%s] Dropping superseded request %d", self._name, self._pending[0]
                )
            self._pending = (seq, snapshot)
            self._cond.notify()

    def _run_loop(self) -> None:
        while True:
            with self._cond:
                while self._running and self._pending is None:
                    self._cond.wait()
                if not self._running:
                    break
                seq, snapshot = self._pending
                self._pending = None

            try:
                result = self._computer.process(snapshot)
                self.computations += 1
                if result is not None:
                    self._on_result(seq, result)
            except Exception:
                logger.exception("[%s] Course computation %d failed", self._name, seq)
                self.errors += 1
