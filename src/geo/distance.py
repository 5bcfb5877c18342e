"""Centralized geographic distance calculations.

This module provides Haversine distance calculations used by every part of
the tracking core: incremental distance and speed, ETA, checkpoint geofences
and the directions refresh throttle.
"""

from math import atan2, cos, degrees, radians, sin, sqrt

from .coordinate import Coordinate

EARTH_RADIUS_M = 6_371_000  # Earth radius in meters

# ~9e-6 degrees per meter (1 / 111,320 m per degree of latitude)
_LAT_DEGREES_PER_METER: float = 1.0 / 111_320


def haversine_distance_m(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Calculate the great-circle distance between two points in meters.

    Args:
        lat1: Latitude of first point in degrees
        lon1: Longitude of first point in degrees
        lat2: Latitude of second point in degrees
        lon2: Longitude of second point in degrees

    Returns:
        Distance between the two points in meters
    """
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    a = min(1.0, a)
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_M * c


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates in meters.

    Symmetric, and exactly 0.0 for identical points.
    """
    if a == b:
        return 0.0
    return haversine_distance_m(a.latitude, a.longitude, b.latitude, b.longitude)


def is_within_proximity(a: Coordinate, b: Coordinate, threshold_m: float = 50.0) -> bool:
    """Check if two coordinates are within a given distance threshold.

    Used for checkpoint geofences: a checkpoint counts as reached once the
    tracked position is at most ``threshold_m`` meters away.
    """
    # Flat-Earth bounding box pre-check, expanded by 1% so the boundary never
    # produces a false negative. The longitude window is widened by the
    # cosine of the latitude closest to a pole.
    lat_threshold = threshold_m * _LAT_DEGREES_PER_METER * 1.01
    if abs(b.latitude - a.latitude) > lat_threshold:
        return False

    cos_lat = cos(radians(max(abs(a.latitude), abs(b.latitude))))
    dlon = abs(b.longitude - a.longitude)
    dlon = min(dlon, 360.0 - dlon)
    if cos_lat > 0.01 and dlon > lat_threshold / cos_lat:
        return False

    return distance_meters(a, b) <= threshold_m


def initial_bearing(a: Coordinate, b: Coordinate) -> float:
    """Initial compass bearing from ``a`` towards ``b`` in degrees [0, 360)."""
    lat1, lon1 = radians(a.latitude), radians(a.longitude)
    lat2, lon2 = radians(b.latitude), radians(b.longitude)

    dlon = lon2 - lon1

    y = sin(dlon) * cos(lat2)
    x = cos(lat1) * sin(lat2) - sin(lat1) * cos(lat2) * cos(dlon)

    return (degrees(atan2(y, x)) + 360) % 360
