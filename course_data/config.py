"""Course data service configuration.

Uses pydantic-settings to load from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings

from course_data.models import CalcMethod


class CourseSettings(BaseSettings):
    """Configuration for the course data service."""

    # Navigation feed (ZMQ)
    zmq_feed_endpoint: str = "tcp://localhost:5010"
    zmq_feed_topic: str = "delta"

    # HTTP / WebSocket
    host: str = "0.0.0.0"
    port: int = 8000
    api_path: str = "/signalk/v2/api"
    ws_path: str = "/ws"

    # Calculations
    calc_method: CalcMethod = CalcMethod.GREAT_CIRCLE
    autopilot: bool = False  # also publish steering.autopilot.target.*
    max_stale_count: int = 20  # incomplete updates before values are invalidated

    # Notifications
    notification_sound: bool = False

    # ZMQ reconnect
    zmq_reconnect_min_s: float = 1.0
    zmq_reconnect_max_s: float = 30.0

    model_config = {"env_prefix": "COURSE_"}


def get_settings() -> CourseSettings:
    """Return a settings instance built from the environment."""
    return CourseSettings()
