#!/usr/bin/env python3
"""Synthetic navigation feed for development.

Publishes navigation deltas on a ZMQ PUB socket for a vessel sailing from
a start point towards (and past) a destination at constant speed, so the
course data service can be exercised without a real boat.

Usage:
    python -m course_data.simulator
    python -m course_data.simulator --bind tcp://*:5010 --rate 2 --speed 6
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import zmq

from course_data.course import KNOTS_TO_MPS, format_instant
from course_data.geodesy import LatLon, destination_point, initial_bearing, to_radians

logger = logging.getLogger(__name__)


@dataclass
class SimulatorConfig:
    """Scenario and publishing parameters.

    Attributes:
        bind_address: ZMQ address to bind the PUB socket to.
        topic: Topic frame sent with every delta.
        rate_hz: Deltas published per second.
        speed_kn: Vessel speed over ground (knots).
        time_scale: Simulated seconds per wall-clock second.
        start: Route start point.
        destination: Route destination.
        arrival_circle_m: Arrival circle radius (meters).
        magnetic_variation_deg: Magnetic variation (degrees, east positive).
        overshoot_m: Distance sailed past the destination before stopping.
    """

    bind_address: str = "tcp://*:5010"
    topic: str = "delta"
    rate_hz: float = 1.0
    speed_kn: float = 6.0
    time_scale: float = 10.0
    start: LatLon = field(default_factory=lambda: LatLon(22.2800, 114.1600))
    destination: LatLon = field(default_factory=lambda: LatLon(22.3000, 114.1800))
    arrival_circle_m: float = 100.0
    magnetic_variation_deg: float = -3.0
    overshoot_m: float = 300.0


class VesselSimulator:
    """Dead-reckons a vessel along the start → destination track."""

    def __init__(self, config: SimulatorConfig) -> None:
        self.config = config
        self.heading_deg = initial_bearing(config.start, config.destination)
        self.track_length_m = config.start.distance_to(config.destination)
        self.sailed_m = 0.0
        self.position = config.start

    @property
    def finished(self) -> bool:
        return self.sailed_m >= self.track_length_m + self.config.overshoot_m

    def step(self, dt_s: float) -> LatLon:
        """Advance the vessel by dt_s simulated seconds."""
        self.sailed_m += self.config.speed_kn * KNOTS_TO_MPS * dt_s
        self.position = destination_point(
            self.config.start, self.heading_deg, self.sailed_m
        )
        return self.position

    def course_delta(self) -> dict[str, Any]:
        """Delta announcing the active destination."""
        cfg = self.config
        return {
            "updates": [
                {
                    "values": [
                        {
                            "path": "navigation.course",
                            "value": {
                                "nextPoint": {
                                    "position": _position(cfg.destination),
                                    "arrivalCircle": cfg.arrival_circle_m,
                                },
                                "previousPoint": {"position": _position(cfg.start)},
                            },
                        },
                        {
                            "path": "navigation.magneticVariation",
                            "value": to_radians(cfg.magnetic_variation_deg),
                        },
                    ]
                }
            ]
        }

    def position_delta(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """Delta carrying the current vessel state."""
        now = now or datetime.now(timezone.utc)
        return {
            "updates": [
                {
                    "timestamp": format_instant(now),
                    "values": [
                        {"path": "navigation.datetime", "value": format_instant(now)},
                        {
                            "path": "navigation.headingTrue",
                            "value": to_radians(self.heading_deg),
                        },
                        {
                            "path": "navigation.speedOverGround",
                            "value": self.config.speed_kn * KNOTS_TO_MPS,
                        },
                        {"path": "navigation.position", "value": _position(self.position)},
                    ],
                }
            ]
        }


def _position(point: LatLon) -> dict[str, float]:
    return {"latitude": point.latitude, "longitude": point.longitude}


def run(config: SimulatorConfig) -> None:
    """Publish the scenario until the vessel has overshot the destination."""
    context = zmq.Context()
    socket = context.socket(zmq.PUB)
    socket.setsockopt(zmq.LINGER, 1000)
    socket.bind(config.bind_address)
    logger.info("Simulator publishing on %s (topic=%s)", config.bind_address, config.topic)

    topic = config.topic.encode("utf-8")
    sim = VesselSimulator(config)
    interval_s = 1.0 / config.rate_hz
    published = 0

    # Give subscribers time to connect before the first delta
    time.sleep(1.0)
    try:
        while not sim.finished:
            if published % 10 == 0:
                socket.send_multipart([topic, json.dumps(sim.course_delta()).encode("utf-8")])
            sim.step(interval_s * config.time_scale)
            socket.send_multipart([topic, json.dumps(sim.position_delta()).encode("utf-8")])
            published += 1

            remaining = sim.track_length_m - sim.sailed_m
            logger.info(
                "Published %d: %.5f, %.5f (%.0fm to go)",
                published,
                sim.position.latitude,
                sim.position.longitude,
                remaining,
            )
            time.sleep(interval_s)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        socket.close()
        context.term()
    logger.info("Simulator finished after %d deltas", published)


def main() -> None:
    parser = argparse.ArgumentParser(description="Synthetic navigation feed publisher")
    parser.add_argument("--bind", default=SimulatorConfig.bind_address, help="ZMQ bind address")
    parser.add_argument("--topic", default=SimulatorConfig.topic, help="ZMQ topic")
    parser.add_argument("--rate", type=float, default=SimulatorConfig.rate_hz, help="Deltas per second")
    parser.add_argument("--speed", type=float, default=SimulatorConfig.speed_kn, help="Speed (knots)")
    parser.add_argument(
        "--time-scale",
        type=float,
        default=SimulatorConfig.time_scale,
        help="Simulated seconds per real second",
    )
    parser.add_argument(
        "--arrival-circle",
        type=float,
        default=SimulatorConfig.arrival_circle_m,
        help="Arrival circle radius (m)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")

    if args.rate <= 0 or math.isnan(args.rate):
        parser.error("--rate must be positive")

    run(
        SimulatorConfig(
            bind_address=args.bind,
            topic=args.topic,
            rate_hz=args.rate,
            speed_kn=args.speed,
            time_scale=args.time_scale,
            arrival_circle_m=args.arrival_circle,
        )
    )


if __name__ == "__main__":
    main()
