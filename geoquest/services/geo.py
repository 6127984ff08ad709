from math import atan2, cos, radians, sin, sqrt
from typing import Optional

EARTH_RADIUS_M = 6371000


def distance_m(lat_a: float, lng_a: float, lat_b: float, lng_b: float) -> float:
    """Return distance in metres using haversine formula."""
    d_lat = radians(lat_b - lat_a)
    d_lng = radians(lng_b - lng_a)
    lat1 = radians(lat_a)
    lat2 = radians(lat_b)
    a = sin(d_lat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(d_lng / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_M * c


def proximity(checkpoint, latitude: Optional[float], longitude: Optional[float], radius_m: float) -> Optional[str]:
    """'near' / 'far' for a known position, None when the position is unknown."""
    if latitude is None or longitude is None:
        return None
    d = distance_m(latitude, longitude, checkpoint.latitude, checkpoint.longitude)
    return 'near' if d <= radius_m else 'far'
