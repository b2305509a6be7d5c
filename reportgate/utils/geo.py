"""Great-circle distance helpers."""
from math import asin, cos, radians, sin, sqrt

EARTH_RADIUS_METERS = 6371000


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance in meters."""
    phi1, phi2 = radians(lat1), radians(lat2)
    dphi = radians(lat2 - lat1)
    dlam = radians(lon2 - lon1)
    a = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlam / 2) ** 2
    return EARTH_RADIUS_METERS * 2 * asin(sqrt(a))
