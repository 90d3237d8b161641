"""
Great-circle helpers for the Qibla compass: initial bearing, haversine distance, heading alignment.

Coordinates are degrees and are not range-checked.
"""
import math
from collections import namedtuple

EARTH_RADIUS_KM = 6371.0
DEFAULT_ALIGNMENT_THRESHOLD = 5.0

GeoPoint = namedtuple("GeoPoint", ["lat", "lon"])
Alignment = namedtuple("Alignment", ["delta", "aligned", "direction"])

KAABA = GeoPoint(21.422487, 39.826206)


def bearing(origin: GeoPoint, destination: GeoPoint) -> float:
    """Initial great-circle bearing in degrees, [0, 360) clockwise from true north."""
    phi1 = math.radians(origin.lat)
    phi2 = math.radians(destination.lat)
    delta_lambda = math.radians(destination.lon - origin.lon)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    theta = math.atan2(y, x)
    return (math.degrees(theta) + 360) % 360


def distance_km(origin: GeoPoint, destination: GeoPoint) -> float:
    """Haversine distance on a 6371 km sphere."""
    d_lat = math.radians(destination.lat - origin.lat)
    d_lon = math.radians(destination.lon - origin.lon)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(origin.lat)) * math.cos(math.radians(destination.lat)) * math.sin(d_lon / 2) ** 2
    )
    a = min(1.0, a)  # rounding near antipodes
    return EARTH_RADIUS_KM * (2 * math.atan2(math.sqrt(a), math.sqrt(1 - a)))


def qibla_bearing(origin: GeoPoint) -> float:
    return bearing(origin, KAABA)


def distance_to_kaaba(origin: GeoPoint) -> float:
    return distance_km(origin, KAABA)


def heading_delta(heading: float, target_bearing: float) -> float:
    """Signed turn from the device heading to the target, in (-180, 180]. Positive turns clockwise."""
    delta = (target_bearing - heading) % 360
    if delta > 180:
        delta -= 360
    return delta


def alignment(heading: float, target_bearing: float, threshold: float = DEFAULT_ALIGNMENT_THRESHOLD) -> Alignment:
    """Whether the device points at the target, and which way to turn if not."""
    delta = heading_delta(heading, target_bearing)
    if abs(delta) < threshold:
        return Alignment(delta, True, "aligned")
    return Alignment(delta, False, "right" if delta > 0 else "left")
