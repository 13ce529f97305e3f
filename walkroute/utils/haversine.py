# Great-circle distances between route points (km).

from math import radians, sin, cos, sqrt, asin
from typing import Sequence

from walkroute.models.dto import RoutePoint

# Earth's radius in kilometers
R = 6371.0

def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points 
    on the Earth (specified in decimal degrees) using the Haversine formula.

    Args:
        lat1: Latitude of point 1.
        lon1: Longitude of point 1.
        lat2: Latitude of point 2.
        lon2: Longitude of point 2.

    Returns:
        Distance between the two points in kilometers.
    """
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])

    dlon = lon2 - lon1
    dlat = lat2 - lat1

    a = sin(dlat / 2)**2 + cos(lat1) * cos(lat2) * sin(dlon / 2)**2
    return 2 * R * asin(sqrt(a))

def polyline_length_km(points: Sequence[RoutePoint]) -> float:
    """Sum of segment lengths along the route, in order. Zero for fewer than two points."""
    total = 0.0
    for prev, cur in zip(points, points[1:]):
        total += haversine(prev.latitude, prev.longitude, cur.latitude, cur.longitude)
    return total
