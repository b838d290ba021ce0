"""
Geodesy helpers for short-range marker motion.

Great-circle distance and bearing, flat-earth offsets for dead reckoning,
and heading arithmetic that handles the 360/0 degree wraparound.
"""

import math
from typing import Tuple

from constants import EARTH_RADIUS_M, METERS_PER_DEGREE_LAT


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in meters."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def initial_bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial bearing from point 1 to point 2 in degrees [0, 360)."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dlon = math.radians(lon2 - lon1)
    y = math.sin(dlon) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlon)
    return normalize_heading(math.degrees(math.atan2(y, x)))


def offset_position(lat: float, lon: float, heading_deg: float, distance_m: float) -> Tuple[float, float]:
    """Move a point distance_m meters along heading_deg.

    Uses the flat-earth approximation: a constant number of meters per degree
    of latitude, with the longitude factor scaled by cos(latitude). Accurate
    for the few tens of meters covered by a prediction window.
    """
    rad = math.radians(heading_deg)
    north_m = distance_m * math.cos(rad)
    east_m = distance_m * math.sin(rad)

    meters_per_degree_lon = METERS_PER_DEGREE_LAT * math.cos(math.radians(lat))
    dlat = north_m / METERS_PER_DEGREE_LAT
    # At the poles there is no meaningful east-west displacement
    dlon = east_m / meters_per_degree_lon if abs(meters_per_degree_lon) > 1e-9 else 0.0

    return lat + dlat, normalize_longitude(lon + dlon)


def normalize_longitude(lon_deg: float) -> float:
    """Wrap a longitude into [-180, 180)."""
    return (lon_deg + 180.0) % 360.0 - 180.0


def normalize_heading(heading_deg: float) -> float:
    """Normalize an angle to [0, 360)."""
    result = heading_deg % 360.0
    # -1e-15 % 360 rounds to 360.0
    return 0.0 if result >= 360.0 else result


def shortest_angle_diff(start_deg: float, end_deg: float) -> float:
    """Signed shortest angular distance from start to end, in [-180, 180)."""
    return (end_deg - start_deg + 180.0) % 360.0 - 180.0


def lerp(start: float, end: float, fraction: float) -> float:
    """Linear interpolation between two values."""
    return start + (end - start) * fraction


def lerp_angle(start_deg: float, end_deg: float, fraction: float) -> float:
    """Interpolate between two headings along the shortest arc."""
    return normalize_heading(start_deg + shortest_angle_diff(start_deg, end_deg) * fraction)


def lerp_longitude(start_deg: float, end_deg: float, fraction: float) -> float:
    """Interpolate between two longitudes the short way round the antimeridian."""
    return normalize_longitude(start_deg + shortest_angle_diff(start_deg, end_deg) * fraction)
