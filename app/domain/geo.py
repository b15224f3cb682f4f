from math import atan2, cos, log10, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0


def distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two WGS84 points (haversine)."""
    phi1, phi2 = radians(lat1), radians(lat2)
    dphi = radians(lat2 - lat1)
    dlambda = radians(lng2 - lng1)
    a = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlambda / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_KM * c * 1000


def popularity_score(rating: float | None, rating_count: int | None) -> float:
    return (rating or 0) * log10((rating_count or 0) + 1)
