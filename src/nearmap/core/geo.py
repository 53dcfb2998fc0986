from __future__ import annotations

import math
from math import atan2, cos, radians, sin, sqrt
from typing import Any, Iterable

"""
Geospatial helpers.

We keep a tiny geometry layer here so ranking and viewport code can do distance
calculations without pulling in heavier GIS dependencies. Functions accept any
object exposing `lat`/`lng` (domain `GeoPoint`, dicts are handled by
`is_valid_coordinate`) so this module stays free of domain imports.
"""

EARTH_RADIUS_KM = 6371.0

LAT_RANGE = (-90.0, 90.0)
LNG_RANGE = (-180.0, 180.0)


def haversine_km(a: Any, b: Any) -> float:
    """Compute great-circle distance in kilometers between two points."""
    lat1 = radians(a.lat)
    lng1 = radians(a.lng)
    lat2 = radians(b.lat)
    lng2 = radians(b.lng)

    dlat = lat2 - lat1
    dlng = lng2 - lng1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlng / 2) ** 2
    # Rounding can push h a hair outside [0, 1] for antipodal points.
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_KM * 2 * atan2(sqrt(h), sqrt(1 - h))


def coerce_float(value: Any) -> float | None:
    """Parse numbers and numeric strings; return None for anything unusable.

    Booleans are rejected even though `bool` is an `int` subclass, and so are
    NaN/inf, since neither can be a coordinate.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        f = float(value)
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            f = float(s)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(f):
        return None
    return f


def _component(p: Any, key: str) -> Any:
    if isinstance(p, dict):
        return p.get(key)
    return getattr(p, key, None)


def is_valid_coordinate(p: Any) -> bool:
    """Return True iff `p` carries numeric lat/lng inside the valid ranges.

    Only real numbers count here (strings must go through `coerce_float` first).
    """
    if p is None:
        return False
    lat = _component(p, "lat")
    lng = _component(p, "lng")
    for v in (lat, lng):
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return False
        if not math.isfinite(v):
            return False
    return LAT_RANGE[0] <= lat <= LAT_RANGE[1] and LNG_RANGE[0] <= lng <= LNG_RANGE[1]


def centroid(points: Iterable[Any]) -> tuple[float, float] | None:
    """Arithmetic mean of lat/lng over `points` (None when empty)."""
    n = 0
    lat_sum = 0.0
    lng_sum = 0.0
    for p in points:
        lat_sum += float(p.lat)
        lng_sum += float(p.lng)
        n += 1
    if n == 0:
        return None
    return lat_sum / n, lng_sum / n
