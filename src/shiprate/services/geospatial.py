"""Geospatial helper functions."""

from __future__ import annotations

import math

EARTH_RADIUS_METERS = 6_371_000.0
METERS_PER_DEGREE_LATITUDE = 111_000.0


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def bounding_box(lat: float, lon: float, radius_meters: float) -> tuple[float, float, float, float]:
    """Return ``(min_lat, max_lat, min_lon, max_lon)`` enclosing a circle around a point.

    The longitude delta widens with latitude; near the poles it is clamped to the full range.
    """

    lat_delta = radius_meters / METERS_PER_DEGREE_LATITUDE
    cos_lat = math.cos(math.radians(lat))
    if abs(cos_lat) < 1e-12:
        lon_delta = 180.0
    else:
        lon_delta = min(180.0, radius_meters / (METERS_PER_DEGREE_LATITUDE * abs(cos_lat)))
    return lat - lat_delta, lat + lat_delta, lon - lon_delta, lon + lon_delta
