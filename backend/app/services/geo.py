"""
Geospatial helpers.

Great-circle distance, ETA arithmetic and point-in-polygon tests. Pure
functions, no state.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Sequence, Union

from backend.app.core.config import settings
from backend.app.schemas.common import GeoPoint

# Radius of Earth in kilometers
EARTH_RADIUS_KM = 6371.0

PointLike = Union[GeoPoint, Sequence[float]]


def _coords(point: PointLike):
    if isinstance(point, GeoPoint):
        return point.latitude, point.longitude
    return float(point[0]), float(point[1])


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in kilometers. NaN input yields NaN.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    # Rounding can push a past 1.0; NaN passes through untouched
    if a > 1.0:
        a = 1.0
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def distance_km(a: PointLike, b: PointLike) -> float:
    """Haversine distance between two points (GeoPoint or (lat, lng) pairs)."""
    lat1, lon1 = _coords(a)
    lat2, lon2 = _coords(b)
    return haversine_distance(lat1, lon1, lat2, lon2)


def path_distance_km(points: Iterable[PointLike]) -> float:
    """Sum of consecutive leg distances along a point list."""
    total = 0.0
    previous = None
    for point in points:
        if previous is not None:
            total += distance_km(previous, point)
        previous = point
    return total


def eta_from_distance(distance: float, avg_speed_kmh: float, now: Optional[datetime] = None) -> datetime:
    """
    Estimated arrival time for covering `distance` km at `avg_speed_kmh`.

    Speeds below the configured floor (a stationary vehicle reports 0) are
    raised to the floor.
    """
    speed = max(avg_speed_kmh, settings.min_eta_speed_kmh)
    now = now or datetime.now(timezone.utc)
    return now + timedelta(hours=distance / speed)


def point_in_polygon(point: PointLike, polygon: Sequence[PointLike]) -> bool:
    """
    Ray casting test for a (lat, lng) point against polygon vertices.

    Polygons with fewer than 3 vertices contain nothing.
    """
    if len(polygon) < 3:
        return False

    x, y = _coords(point)
    vertices = [_coords(v) for v in polygon]
    n = len(vertices)
    inside = False

    p1x, p1y = vertices[0]
    for i in range(1, n + 1):
        p2x, p2y = vertices[i % n]
        if min(p1y, p2y) < y <= max(p1y, p2y) and x <= max(p1x, p2x):
            xinters = (y - p1y) * (p2x - p1x) / (p2y - p1y) + p1x
            if p1x == p2x or x <= xinters:
                inside = not inside
        p1x, p1y = p2x, p2y

    return inside
