"""Shared geodesic distance and coordinate utilities.

Distances use a spherical earth, matching PostGIS ``ST_DistanceSphere``;
no sub-meter precision is promised.
"""
from __future__ import annotations

import math

from geoalchemy2.elements import WKTElement

# Sphere radius used by PostGIS ST_DistanceSphere
_EARTH_RADIUS_M: float = 6_370_986.0
WGS84_SRID: int = 4326


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two WGS-84 coordinates."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    )
    return _EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def destination_point(
    lat: float, lon: float, bearing_deg: float, distance_m: float
) -> tuple[float, float]:
    """Point reached by travelling *distance_m* along *bearing_deg* from (lat, lon).

    Inverse of :func:`haversine_meters` on the same sphere.
    """
    delta = distance_m / _EARTH_RADIUS_M
    theta = math.radians(bearing_deg)
    phi1 = math.radians(lat)
    lam1 = math.radians(lon)
    phi2 = math.asin(
        math.sin(phi1) * math.cos(delta)
        + math.cos(phi1) * math.sin(delta) * math.cos(theta)
    )
    lam2 = lam1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )
    # Normalise longitude to [-180, 180)
    lon2 = (math.degrees(lam2) + 540.0) % 360.0 - 180.0
    return math.degrees(phi2), lon2


def is_valid_coordinate(lat: float, lon: float) -> bool:
    """True if both values are finite and inside the WGS-84 lat/lon ranges."""
    try:
        if not (math.isfinite(lat) and math.isfinite(lon)):
            return False
    except TypeError:
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def point_element(lat: float, lon: float) -> WKTElement:
    """POINT geometry (x=lon, y=lat) in EPSG:4326 for a sample's ``geom`` column."""
    return WKTElement(f"POINT({lon!r} {lat!r})", srid=WGS84_SRID)
