"""Notification deltas raised from watcher events."""

from __future__ import annotations

from typing import Optional, Sequence

from course_data.models import AlarmMethod, AlarmState, DeltaValue, NotificationValue

NOTIFICATION_ROOT = "notifications"

ARRIVAL_CIRCLE_ENTERED = "navigation.course.arrivalCircleEntered"
PERPENDICULAR_PASSED = "navigation.course.perpendicularPassed"


def alarm_methods(sound: bool) -> list[AlarmMethod]:
    """Presentation methods for alert notifications."""
    if sound:
        return [AlarmMethod.SOUND, AlarmMethod.VISUAL]
    return [AlarmMethod.VISUAL]


def build_notification(
    path: str,
    message: Optional[str],
    state: AlarmState = AlarmState.ALERT,
    method: Sequence[AlarmMethod] = (),
) -> DeltaValue:
    """Build a notification path value.

    A None message clears the notification (value null).
    """
    full_path = f"{NOTIFICATION_ROOT}.{path}"
    if message is None:
        return DeltaValue(path=full_path, value=None)
    return DeltaValue(
        path=full_path,
        value=NotificationValue(state=state, method=list(method), message=message),
    )
