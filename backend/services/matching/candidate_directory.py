"""
Find responders near an emergency.

A bounding-box range query on the stored responder positions narrows the
search; each row is then checked against the true great-circle distance.
"""

import logging
from typing import Iterator

from django.db.models import Q

from accounts.models import RESPONDER_ROLES
from common.utils.geo import BoundingBox, bounding_box, calculate_distance
from responders.models import ResponderProfile

logger = logging.getLogger(__name__)


def profiles_in_box(responder_class: str, box: BoundingBox):
    """
    Responder profiles of `responder_class` whose last known position lies
    inside `box` (inclusive). Profiles without a position never match.
    """
    if responder_class not in RESPONDER_ROLES:
        raise ValueError(f"Not a responder class: {responder_class!r}")

    if box.crosses_antimeridian:
        lon_filter = Q(current_longitude__gte=box.left) | Q(current_longitude__lte=box.right)
    else:
        lon_filter = Q(current_longitude__gte=box.left, current_longitude__lte=box.right)

    return (
        ResponderProfile.objects
        .filter(
            user__role=responder_class,
            user__is_active=True,
            current_latitude__gte=box.bottom,
            current_latitude__lte=box.top,
        )
        .filter(lon_filter)
        .order_by("user_id")
    )


def find_candidates(responder_class: str, lat: float, lon: float, radius: float) -> Iterator[int]:
    """
    Yield user ids of responders within `radius` meters of (lat, lon),
    closest first (ties by id).

    Args:
        responder_class: Role.DOCTOR or Role.TRANSIT
        lat: Latitude of the emergency
        lon: Longitude of the emergency
        radius: Search radius in meters

    Raises:
        RangeExceededError: radius outside (0, DISPATCH_MAX_RADIUS_METERS]
    """
    box = bounding_box(lat, lon, radius)

    rows = profiles_in_box(responder_class, box).values_list(
        "user_id", "current_latitude", "current_longitude"
    )

    # Secondary radius check: the box corners lie outside the circle
    candidates = []
    for user_id, r_lat, r_lon in rows:
        distance = calculate_distance(lat, lon, r_lat, r_lon)
        if distance <= float(radius):
            candidates.append((distance, user_id))

    candidates.sort()

    logger.info(
        "Found %d %s candidates within %sm of (%s, %s)",
        len(candidates), responder_class, radius, lat, lon
    )

    for _, user_id in candidates:
        yield user_id
