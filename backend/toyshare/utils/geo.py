"""Great-circle distance helpers used for radius filtering.

Coordinates arrive from query strings and older rows as text, so the
helpers here accept loosely typed input and treat anything unparseable
as "no coordinate" rather than failing the whole search.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Tuple, TypeVar

EARTH_RADIUS_MILES = 3958.8

T = TypeVar("T")


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance between two points in miles."""
    lat1, lon1, lat2, lon2 = map(math.radians, (lat1, lon1, lat2, lon2))
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


def parse_coordinate(value) -> Optional[float]:
    """Coerce `value` to a finite float or return None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(out):
        return None
    return out


def valid_coordinates(lat: Optional[float], lon: Optional[float]) -> bool:
    if lat is None or lon is None:
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def filter_by_radius(
    items: Iterable[T],
    latitude: float,
    longitude: float,
    radius_miles: float,
) -> List[Tuple[T, float]]:
    """Keep items within `radius_miles` of the reference point.

    Each item must expose `latitude` and `longitude` attributes. Items
    without usable coordinates are dropped. Input order is preserved and
    every kept item is paired with its distance in miles.
    """
    out = []
    for item in items:
        lat = parse_coordinate(getattr(item, "latitude", None))
        lon = parse_coordinate(getattr(item, "longitude", None))
        if not valid_coordinates(lat, lon):
            continue
        distance = haversine_miles(latitude, longitude, lat, lon)
        if distance <= radius_miles:
            out.append((item, distance))
    return out
