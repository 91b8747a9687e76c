"""
Geographic utility functions.

This module provides core geospatial calculations used throughout the application:
great-circle distance, destination-point projection and the geofence
(bounding box) used to pre-filter responders with a range query.
"""

from dataclasses import dataclass
from math import radians, degrees, cos, sin, asin, atan2, sqrt

EARTH_RADIUS_METERS = 6371000

# Bearings (degrees) of the four cardinal destination points
CARDINAL_BEARINGS = (0, 90, 180, 270)


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in meters using Haversine formula.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in meters
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(min(1.0, sqrt(a)))
    return c * EARTH_RADIUS_METERS


def normalize_longitude(lon: float) -> float:
    """Wrap a longitude into [-180, 180)."""
    return (lon + 540.0) % 360.0 - 180.0


def destination_point(lat: float, lon: float, distance: float, bearing: float):
    """
    Project the point reached by travelling `distance` meters from
    (lat, lon) along the great circle starting at `bearing` degrees.

    Returns:
        (latitude, longitude) tuple in degrees
    """
    phi1 = radians(float(lat))
    lambda1 = radians(float(lon))
    theta = radians(float(bearing))
    delta = float(distance) / EARTH_RADIUS_METERS

    phi2 = asin(sin(phi1) * cos(delta) + cos(phi1) * sin(delta) * cos(theta))
    lambda2 = lambda1 + atan2(
        sin(theta) * sin(delta) * cos(phi1),
        cos(delta) - sin(phi1) * sin(phi2),
    )
    return degrees(phi2), normalize_longitude(degrees(lambda2))


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned geofence. When `left > right` the box crosses the
    antimeridian and covers [left, 180) plus [-180, right].
    """
    top: float
    bottom: float
    left: float
    right: float

    @property
    def crosses_antimeridian(self) -> bool:
        return self.left > self.right

    def contains(self, lat: float, lon: float) -> bool:
        if not (self.bottom <= lat <= self.top):
            return False
        if self.crosses_antimeridian:
            return lon >= self.left or lon <= self.right
        return self.left <= lon <= self.right


def bounding_box(lat: float, lon: float, radius: float, max_radius: float = None) -> BoundingBox:
    """
    Build the geofence guaranteed to contain every point within `radius`
    meters of (lat, lon).

    The box is the extrema of the four cardinal destination points at the
    requested radius, widened where the circle reaches a pole or bulges
    past its east/west points.

    Args:
        lat: Center latitude
        lon: Center longitude
        radius: Search radius in meters, 0 < radius <= max_radius
        max_radius: Upper bound, defaults to settings.DISPATCH_MAX_RADIUS_METERS

    Raises:
        RangeExceededError: radius is not positive or above max_radius
    """
    from services.dispatch_management.exceptions import RangeExceededError

    if max_radius is None:
        from django.conf import settings
        max_radius = settings.DISPATCH_MAX_RADIUS_METERS

    if radius is None or not (0 < float(radius) <= float(max_radius)):
        raise RangeExceededError(f"Range should be between 0 and {max_radius:g}m")

    north, east, south, west = (
        destination_point(lat, lon, radius, bearing) for bearing in CARDINAL_BEARINGS
    )
    top = max(north[0], south[0])
    bottom = min(north[0], south[0])
    left = west[1]
    right = east[1]

    delta = float(radius) / EARTH_RADIUS_METERS
    phi = radians(float(lat))

    # Circle covers a pole: every longitude is in range
    if phi + delta >= radians(90) or phi - delta <= radians(-90):
        return BoundingBox(
            top=min(90.0, degrees(phi + delta)),
            bottom=max(-90.0, degrees(phi - delta)),
            left=-180.0,
            right=180.0,
        )

    # East/west destination points undershoot the widest meridian away
    # from the equator; use the tangent meridian offset instead.
    half_width = degrees(asin(min(1.0, sin(delta) / cos(phi))))
    if half_width >= 180.0:
        return BoundingBox(top=top, bottom=bottom, left=-180.0, right=180.0)
    left = normalize_longitude(min(_unwrap(left, lon), float(lon) - half_width))
    right = normalize_longitude(max(_unwrap(right, lon), float(lon) + half_width))

    return BoundingBox(top=top, bottom=bottom, left=left, right=right)


def _unwrap(value: float, reference: float) -> float:
    """Shift `value` by whole turns so it lies within 180 degrees of `reference`."""
    value = float(value)
    while value - reference > 180.0:
        value -= 360.0
    while reference - value > 180.0:
        value += 360.0
    return value
