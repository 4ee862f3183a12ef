"""Spherical-earth geodesy primitives.

Great-circle and rhumb-line distance/bearing plus cross-track distance
between (latitude, longitude) points given in degrees. Distances are in
meters on a sphere of mean radius 6 371 km; bearings in degrees 0–360.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

# Mean earth radius (meters)
EARTH_RADIUS_M = 6_371_000.0

# Latitude limit (radians) for the Mercator projection used by rhumb lines
_MAX_PHI = math.pi / 2.0 - 1e-12


def to_radians(value: float) -> float:
    """Convert degrees to radians."""
    return value * math.pi / 180.0


def _wrap_delta_lon(dlam: float) -> float:
    """Take a longitude difference (radians) the short way round."""
    if abs(dlam) > math.pi:
        dlam -= math.copysign(2.0 * math.pi, dlam)
    return dlam


def _isometric_latitude(phi: float) -> float:
    """Mercator isometric latitude ψ; the poles are pulled in to keep ψ finite."""
    phi = max(-_MAX_PHI, min(_MAX_PHI, phi))
    return math.log(math.tan(math.pi / 4.0 + phi / 2.0))


def _isometric_delta(phi1: float, phi2: float) -> float:
    """Difference of Mercator isometric latitudes (Δψ)."""
    return _isometric_latitude(phi2) - _isometric_latitude(phi1)


@dataclass(frozen=True)
class LatLon:
    """A geographic point in degrees."""

    latitude: float
    longitude: float

    def distance_to(self, other: LatLon) -> float:
        return distance(self, other)

    def initial_bearing_to(self, other: LatLon) -> float:
        return initial_bearing(self, other)

    def rhumb_distance_to(self, other: LatLon) -> float:
        return rhumb_distance(self, other)

    def rhumb_bearing_to(self, other: LatLon) -> float:
        return rhumb_bearing(self, other)

    def cross_track_distance_to(self, path_start: LatLon, path_end: LatLon) -> float:
        return cross_track_distance(self, path_start, path_end)


def distance(a: LatLon, b: LatLon) -> float:
    """Great-circle distance (haversine) from a to b in meters."""
    phi1 = to_radians(a.latitude)
    phi2 = to_radians(b.latitude)
    dphi = to_radians(b.latitude - a.latitude)
    dlam = to_radians(b.longitude - a.longitude)

    h = (
        math.sin(dphi / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2.0) ** 2
    )
    c = 2.0 * math.atan2(math.sqrt(h), math.sqrt(1.0 - h))
    return EARTH_RADIUS_M * c


def initial_bearing(a: LatLon, b: LatLon) -> float:
    """Initial great-circle bearing from a to b, degrees clockwise from true north.

    Returns 0 when the two points coincide.
    """
    if a == b:
        return 0.0
    phi1 = to_radians(a.latitude)
    phi2 = to_radians(b.latitude)
    dlam = to_radians(b.longitude - a.longitude)

    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlam)
    y = math.sin(dlam) * math.cos(phi2)
    return math.degrees(math.atan2(y, x)) % 360.0


def rhumb_distance(a: LatLon, b: LatLon) -> float:
    """Rhumb-line (loxodrome) distance from a to b in meters.

    Along a parallel (Δψ ≈ 0) the stretching factor degenerates, so the
    cosine of the start latitude is used instead.
    """
    phi1 = to_radians(a.latitude)
    phi2 = to_radians(b.latitude)
    dphi = phi2 - phi1
    dlam = _wrap_delta_lon(to_radians(b.longitude - a.longitude))

    dpsi = _isometric_delta(phi1, phi2)
    q = dphi / dpsi if abs(dpsi) > 1e-11 else math.cos(phi1)

    delta = math.sqrt(dphi * dphi + q * q * dlam * dlam)
    return delta * EARTH_RADIUS_M


def rhumb_bearing(a: LatLon, b: LatLon) -> float:
    """Constant rhumb-line bearing from a to b, degrees clockwise from true north."""
    if a == b:
        return 0.0
    phi1 = to_radians(a.latitude)
    phi2 = to_radians(b.latitude)
    dlam = _wrap_delta_lon(to_radians(b.longitude - a.longitude))

    dpsi = _isometric_delta(phi1, phi2)
    return math.degrees(math.atan2(dlam, dpsi)) % 360.0


def cross_track_distance(point: LatLon, path_start: LatLon, path_end: LatLon) -> float:
    """Signed distance of point from the great circle path_start → path_end.

        d_xt = asin(sin(δ13) · sin(θ13 − θ12)) · R

    Positive = right of the path, negative = left. Meters.
    """
    if point == path_start:
        return 0.0
    delta13 = distance(path_start, point) / EARTH_RADIUS_M
    theta13 = to_radians(initial_bearing(path_start, point))
    theta12 = to_radians(initial_bearing(path_start, path_end))

    dxt = math.asin(math.sin(delta13) * math.sin(theta13 - theta12))
    return dxt * EARTH_RADIUS_M


def destination_point(start: LatLon, bearing: float, dist: float) -> LatLon:
    """Point reached travelling dist meters from start on initial bearing (degrees)."""
    delta = dist / EARTH_RADIUS_M
    theta = to_radians(bearing)
    phi1 = to_radians(start.latitude)
    lam1 = to_radians(start.longitude)

    sin_phi2 = math.sin(phi1) * math.cos(delta) + math.cos(phi1) * math.sin(delta) * math.cos(theta)
    phi2 = math.asin(max(-1.0, min(1.0, sin_phi2)))
    y = math.sin(theta) * math.sin(delta) * math.cos(phi1)
    x = math.cos(delta) - math.sin(phi1) * sin_phi2
    lam2 = lam1 + math.atan2(y, x)

    lon = (math.degrees(lam2) + 540.0) % 360.0 - 180.0
    return LatLon(latitude=math.degrees(phi2), longitude=lon)
