"""
Great-circle distance helpers for the radius filter.

The SQL side compares the haversine term `a` against a precomputed bound
instead of taking asin/sqrt in the database, so only sin and cos are needed.
"""

import math

EARTH_RADIUS_MILES = 3958.8
DEFAULT_RADIUS_MILES = 200.0
# Anything beyond half the circumference covers the whole globe
MAX_RADIUS_MILES = math.pi * EARTH_RADIUS_MILES


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.asin(math.sqrt(min(1.0, a)))


def haversine_bound(miles: float) -> float:
    """Largest haversine term `a` still within `miles` of the origin."""
    if miles >= MAX_RADIUS_MILES:
        return 1.0
    return math.sin(miles / (2 * EARTH_RADIUS_MILES)) ** 2
