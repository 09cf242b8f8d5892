"""
Geographic helpers shared by proximity search and request acceptance.
"""
import math
from typing import Optional

from models import GeoPoint, DistanceCategory

EARTH_RADIUS_KM = 6371.0
KM_TO_MILES = 0.621371

# Upper bounds (exclusive) in km; anything beyond the last is VERY_FAR
DISTANCE_BANDS = (
    (5, DistanceCategory.VERY_CLOSE),
    (15, DistanceCategory.CLOSE),
    (30, DistanceCategory.MODERATE),
    (50, DistanceCategory.FAR),
)


def is_usable(point: Optional[GeoPoint]) -> bool:
    return point is not None and point.is_valid()


def haversine_km(origin: GeoPoint, target: GeoPoint) -> float:
    """Great-circle distance in kilometres."""
    phi1, phi2 = math.radians(origin.latitude), math.radians(target.latitude)
    delta_phi = math.radians(target.latitude - origin.latitude)
    delta_lambda = math.radians(target.longitude - origin.longitude)

    a = math.sin(delta_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_category(km: float) -> DistanceCategory:
    for upper, category in DISTANCE_BANDS:
        if km < upper:
            return category
    return DistanceCategory.VERY_FAR


def distance_info(origin: Optional[GeoPoint], target: Optional[GeoPoint]) -> Optional[dict]:
    """Distance summary shown when a blood bank accepts a hospital request."""
    if not (is_usable(origin) and is_usable(target)):
        return None
    km = haversine_km(origin, target)
    return {
        "kilometers": round(km, 2),
        "miles": round(km * KM_TO_MILES, 2),
        "category": distance_category(km).value,
        "formatted": f"{km:.2f} km",
    }


def bounding_box(origin: GeoPoint, radius_km: float) -> dict:
    """
    Latitude/longitude box enclosing the circle of ``radius_km`` around origin.

    Used as a cheap database prefilter; exact filtering is done with
    haversine_km on the returned candidates.
    """
    lat_delta = math.degrees(radius_km / EARTH_RADIUS_KM)
    cos_lat = math.cos(math.radians(origin.latitude))
    if cos_lat < 1e-6:
        lng_delta = 180.0
    else:
        lng_delta = min(180.0, math.degrees(radius_km / (EARTH_RADIUS_KM * cos_lat)))
    return {
        "min_lat": max(-90.0, origin.latitude - lat_delta),
        "max_lat": min(90.0, origin.latitude + lat_delta),
        "min_lng": origin.longitude - lng_delta,
        "max_lng": origin.longitude + lng_delta,
    }
