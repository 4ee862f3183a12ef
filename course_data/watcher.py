"""Threshold watcher: turns a numeric stream into enter/exit events.

A value is *inside* when ``range_min <= value < range_max``. An event is
emitted only when membership changes, so a value hovering inside (or
outside) the range produces nothing after the first transition.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from course_data.models import WatchEvent, WatchEventKind

logger = logging.getLogger(__name__)

WatchListener = Callable[[WatchEvent], None]


class Watcher:
    """Range-membership detector with transition events.

    Attributes:
        range_min: Inclusive lower bound.
        range_max: Exclusive upper bound.

    Not thread-safe: observe from a single thread.
    """

    def __init__(
        self, range_min: float = 0.0, range_max: float = 0.0, name: str = "watcher"
    ) -> None:
        self.range_min = range_min
        self.range_max = range_max
        self.name = name
        self._inside = False
        self._value: Optional[float] = None
        self._listeners: list[WatchListener] = []

    @property
    def inside(self) -> bool:
        """Whether the last observed value was inside the range."""
        return self._inside

    @property
    def value(self) -> Optional[float]:
        """The last observed value."""
        return self._value

    def set_range(self, range_min: float, range_max: float) -> None:
        """Update both bounds. Takes effect on the next observe()."""
        self.range_min = range_min
        self.range_max = range_max

    def in_range(self, value: float) -> bool:
        return self.range_min <= value < self.range_max

    def observe(self, value: float) -> Optional[WatchEvent]:
        """Record a value and return an event if membership changed."""
        self._value = value
        inside = self.in_range(value)
        if inside == self._inside:
            return None

        self._inside = inside
        kind = WatchEventKind.ENTER if inside else WatchEventKind.EXIT
        return self._emit(kind, value)

    def reset(self) -> Optional[WatchEvent]:
        """Force the watcher outside, emitting exit if it was inside."""
        if not self._inside:
            return None
        self._inside = False
        value = self._value if self._value is not None else self.range_max
        return self._emit(WatchEventKind.EXIT, value)

    def subscribe(self, listener: WatchListener) -> Callable[[], None]:
        """Register a listener for emitted events.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: WatchEventKind, value: float) -> WatchEvent:
        event = WatchEvent(
            kind=kind,
            value=value,
            range_min=self.range_min,
            range_max=self.range_max,
        )
        logger.debug(
            "[%s] %s value=%s range=[%s, %s)",
            self.name,
            kind.value,
            value,
            self.range_min,
            self.range_max,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("[%s] Error in watch listener", self.name)
        return event
