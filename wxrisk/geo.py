"""Unit conversions and great-circle geometry.

All functions are pure.  Angles are in degrees, distances in nautical miles
unless the name says otherwise.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

EARTH_RADIUS_NM = 3440.065
KM_PER_NM = 1.852
METERS_TO_FEET = 3.28084
FEET_TO_METERS = 0.3048
MPS_TO_KNOTS = 1.943844
KNOTS_TO_MPS = 0.514444


@dataclass(frozen=True)
class Wind:
    speed_kt: float
    direction_deg: float


def normalize_degrees(value: float) -> float:
    """Fold an angle into ``[0, 360)``."""
    result = value % 360.0
    # -1e-20 % 360.0 == 360.0 in floating point
    if result >= 360.0:
        return 0.0
    return result


def wind_to_polar(x: Optional[float], y: Optional[float]) -> Optional[Wind]:
    """Convert east/north wind components (knots) to speed and direction.

    The direction is the mathematical angle of the vector, ``atan2(y, x)``,
    so ``(1, 0)`` maps to 0 and ``(0, 1)`` to 90.  Returns ``None`` when either
    component is missing.
    """
    if x is None or y is None:
        return None
    speed = math.hypot(x, y)
    direction = normalize_degrees(math.degrees(math.atan2(y, x)))
    return Wind(speed_kt=speed, direction_deg=direction)


def wind_components(direction_deg: Optional[float], speed_kt: Optional[float]) -> Tuple[Optional[float], Optional[float]]:
    """Convert a reported FROM-direction and speed to ``(wind_x, wind_y)``."""
    if direction_deg is None or speed_kt is None:
        return None, None
    radians = math.radians(direction_deg - 90.0)
    return speed_kt * math.cos(radians), speed_kt * math.sin(radians)


def bearing_deg(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Initial great-circle bearing from point 1 to point 2, clockwise from true north.

    For antipodal points the bearing is undefined; the value returned is
    whatever ``atan2`` yields for the degenerate inputs (for example 90 for
    ``(0, 0) -> (0, 180)``), normalized to ``[0, 360)``.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_lambda = math.radians(lng2 - lng1)
    y = math.sin(d_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda)
    return normalize_degrees(math.degrees(math.atan2(y, x)))


def distance_nm(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance in nautical miles."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    # each term is symmetric in the two points, so distance(A, B) == distance(B, A) exactly
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_NM * c


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    return distance_nm(lat1, lng1, lat2, lng2) * KM_PER_NM


def angle_between(heading_deg: float, bearing: float) -> float:
    """Absolute difference between two headings, folded to ``[0, 180]``."""
    diff = abs(normalize_degrees(heading_deg) - normalize_degrees(bearing))
    if diff > 180.0:
        diff = 360.0 - diff
    return diff


__all__ = [
    "EARTH_RADIUS_NM",
    "FEET_TO_METERS",
    "KM_PER_NM",
    "KNOTS_TO_MPS",
    "METERS_TO_FEET",
    "MPS_TO_KNOTS",
    "Wind",
    "angle_between",
    "bearing_deg",
    "distance_km",
    "distance_nm",
    "normalize_degrees",
    "wind_components",
    "wind_to_polar",
]
