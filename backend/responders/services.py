"""
Responder-side writes: the counter ledger plus the responder's own
location and device updates.

Ledger updates are additive F() increments so they commute with each other
and with concurrent profile edits; profile edits only save the fields they
own.
"""

import logging
from typing import Iterable

from django.db.models import F
from django.utils import timezone

from responders.models import ResponderProfile

logger = logging.getLogger(__name__)


# COUNTER LEDGER
def record_offers(user_ids: Iterable[int]) -> int:
    """Increment offered_count once for every responder in `user_ids`."""
    user_ids = list(user_ids)
    if not user_ids:
        return 0
    updated = ResponderProfile.objects.filter(user_id__in=user_ids).update(
        offered_count=F("offered_count") + 1
    )
    if updated != len(set(user_ids)):
        logger.warning("Offer ledger touched %d of %d responders", updated, len(set(user_ids)))
    return updated


def record_acceptance(user_id: int) -> int:
    """Increment accepted_count of the claiming responder."""
    return ResponderProfile.objects.filter(user_id=user_id).update(
        accepted_count=F("accepted_count") + 1
    )


# PROFILE UPDATES
def update_responder_location(profile: ResponderProfile, lat, lon):
    """Store the responder's latest reported position."""
    profile.current_latitude = float(lat)
    profile.current_longitude = float(lon)
    profile.last_location_update = timezone.now()
    profile.save(update_fields=["current_latitude", "current_longitude", "last_location_update"])
    return profile


def update_device_handle(user, device_id):
    """Replace (or clear, with None/blank) the user's push handle."""
    user.device_id = device_id or None
    user.save(update_fields=["device_id"])
    return user
