"""
Core dispatch lifecycle operations.

This module owns the life of a DispatchRequest: broadcast to nearby
responders, escalation to a wider radius, claim, decline and resolution.
State changes go through services.dispatch_management.store; notifications
are submitted only after the store call has returned, so a lost push never
undoes a committed transition.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from django.conf import settings
from django.db.models import Q

from accounts import identity
from accounts.models import Role
from dispatch.models import DispatchOffer, DispatchRequest
from realtime.notifications import NotificationKind, fan_out_except, notify_user
from services.matching import find_candidates
from . import store
from .exceptions import (
    AlreadyClaimedError,
    AlreadyResolvedError,
    OfferNotFoundError,
    RequestNotFoundError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

# Which class of responder a requester's broadcast goes to
TARGET_CLASS_BY_ROLE = {
    Role.CLIENT: Role.DOCTOR,
    Role.DOCTOR: Role.TRANSIT,
}

OFFER_KIND_BY_CLASS = {
    Role.DOCTOR: NotificationKind.SOS,
    Role.TRANSIT: NotificationKind.TRANSIT,
}


@dataclass
class DispatchResult:
    """Result object for dispatch operations."""
    success: bool
    request: Optional[DispatchRequest] = None
    message: str = ""
    error_code: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


# ===================== Payloads =====================

def offer_body(request: DispatchRequest) -> Dict[str, Any]:
    return {
        "id": str(request.id),
        "lat": request.origin_latitude,
        "lon": request.origin_longitude,
        "note": request.note,
    }


def _public_profile(user) -> Dict[str, Any]:
    from accounts.serializers import PublicProfileSerializer
    return dict(PublicProfileSerializer(user).data)


# ===================== Guards =====================

def _require_owner(user, request: DispatchRequest):
    identity.require_role(user)
    if request.requester_id != user.id:
        raise UnauthorizedError("Only the requester may perform this action")


def _require_candidate(responder, request: DispatchRequest):
    identity.require_role(responder, request.responder_class)
    if not DispatchOffer.objects.filter(request_id=request.id, responder_id=responder.id).exists():
        raise OfferNotFoundError("This request was not offered to you")


# ===================== Requester Operations =====================

def create_request(
    requester,
    lat: float,
    lon: float,
    note: str = "",
    radius: Optional[float] = None,
    responder_class: Optional[str] = None,
    parent: Optional[DispatchRequest] = None,
) -> DispatchResult:
    """
    Create a request and offer it to every responder in range.

    Clients broadcast to doctors. Doctors broadcast to transit services, and
    only for an SOS they have claimed (see create_transit_request).

    Args:
        requester: User creating the request
        lat: Latitude of the emergency
        lon: Longitude of the emergency
        note: Free-text description
        radius: Search radius in meters (default DISPATCH_DEFAULT_RADIUS_METERS)
        responder_class: Role.DOCTOR or Role.TRANSIT, derived from the
            requester's role when omitted
        parent: Request this one is derived from

    Returns:
        DispatchResult with the created request

    Raises:
        UnauthorizedError: requester may not broadcast to responder_class
        RangeExceededError: radius not in (0, DISPATCH_MAX_RADIUS_METERS]
    """
    identity.require_role(requester, *TARGET_CLASS_BY_ROLE)
    expected_class = TARGET_CLASS_BY_ROLE[requester.role]
    if responder_class is None:
        responder_class = expected_class
    elif responder_class != expected_class:
        raise UnauthorizedError(f"A {requester.role} cannot request a {responder_class}")

    # Transit is only ever derived from an SOS the requester has claimed
    if responder_class == Role.TRANSIT and (parent is None or parent.claimant_id != requester.id):
        raise UnauthorizedError("Transit can only be requested for an SOS you have claimed")

    if radius is None:
        radius = settings.DISPATCH_DEFAULT_RADIUS_METERS

    candidate_ids = [
        user_id for user_id in find_candidates(responder_class, lat, lon, radius)
        if user_id != requester.id
    ]

    # Chosen once so a retried insert finds its own earlier row
    request_id = uuid.uuid4()
    request, created = store.persist_request(
        request_id,
        requester=requester,
        responder_class=responder_class,
        lat=lat,
        lon=lon,
        note=note,
        radius=radius,
        candidate_ids=candidate_ids,
        parent=parent,
    )

    if created:
        fan_out_except(candidate_ids, None, OFFER_KIND_BY_CLASS[responder_class], offer_body(request))

    logger.info(
        "Request %s by user %s offered to %d %s responders",
        request.id, requester.id, len(candidate_ids), responder_class
    )

    if candidate_ids:
        message = f"Notifying {len(candidate_ids)} nearby responders..."
    else:
        message = "No responders found nearby yet. Try a wider radius."

    return DispatchResult(
        success=True,
        request=request,
        message=message,
        extra={"candidates": len(candidate_ids)},
    )


def create_transit_request(
    doctor,
    parent_id,
    note: str = "",
    radius: Optional[float] = None,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
) -> DispatchResult:
    """
    Spawn a transit request from an SOS the doctor has claimed.

    The origin defaults to the SOS origin.

    Raises:
        UnauthorizedError: caller is not the SOS claimant
        AlreadyResolvedError: the SOS is resolved
    """
    identity.require_role(doctor, Role.DOCTOR)
    parent = store.load_request(parent_id)

    if parent.claimant_id != doctor.id:
        raise UnauthorizedError("Only the doctor who claimed this request may call transit")
    if parent.resolved:
        raise AlreadyResolvedError("Request is already resolved")

    if lat is None or lon is None:
        lat, lon = parent.origin_latitude, parent.origin_longitude

    return create_request(
        doctor,
        lat,
        lon,
        note=note,
        radius=radius,
        responder_class=Role.TRANSIT,
        parent=parent,
    )


def escalate_request(owner, request_id, radius: float) -> DispatchResult:
    """
    Widen the search radius and offer the request to responders newly in range.

    Responders already offered the request are never offered it again, so
    repeating the call with the same radius changes nothing.

    Raises:
        RequestNotFoundError, UnauthorizedError, RangeExceededError
        AlreadyResolvedError: request is resolved
        AlreadyClaimedError: request already has a claimant
    """
    request = store.load_request(request_id)
    _require_owner(owner, request)

    if request.resolved:
        raise AlreadyResolvedError("Request is already resolved")
    if request.claimant_id is not None:
        raise AlreadyClaimedError("Request has already been claimed")

    candidate_ids = [
        user_id for user_id in find_candidates(
            request.responder_class, request.origin_latitude, request.origin_longitude, radius
        )
        if user_id != request.requester_id
    ]

    added = store.append_candidates(request.id, candidate_ids, radius)
    if added is None:
        raise AlreadyResolvedError("Request is already resolved")

    request.refresh_from_db()
    if added:
        fan_out_except(added, None, OFFER_KIND_BY_CLASS[request.responder_class], offer_body(request))

    logger.info("Request %s escalated to %sm, %d new candidates", request.id, radius, len(added))

    return DispatchResult(
        success=True,
        request=request,
        message=f"Notified {len(added)} more responders" if added else "No new responders in range",
        extra={"added": len(added)},
    )


def resolve_request(owner, request_id) -> DispatchResult:
    """
    Mark the request resolved and tell the remaining candidates.

    Resolving twice is a no-op success; only the first call notifies.
    """
    request = store.load_request(request_id)
    _require_owner(owner, request)

    if not store.set_resolved(request.id):
        return DispatchResult(success=True, request=request, message="Request already resolved")

    request.refresh_from_db()
    notified = fan_out_except(
        request.candidate_ids(),
        request.claimant_id,
        NotificationKind.RESOLVED,
        {"id": str(request.id)},
    )
    logger.info("Request %s resolved by user %s", request.id, owner.id)

    return DispatchResult(
        success=True,
        request=request,
        message="Request resolved",
        extra={"notified": notified},
    )


# ===================== Responder Operations =====================

def claim_request(responder, request_id) -> DispatchResult:
    """
    Claim a request for `responder`. The first successful claim wins.

    On success the requester gets an `accept` notification carrying the
    claimant's profile, and every other candidate a `resolved` one.
    Claiming again by the current claimant succeeds without counting twice
    and repeats both notifications.

    Returns:
        DispatchResult whose extra["requester"] is the requester's public profile

    Raises:
        RequestNotFoundError, UnauthorizedError
        OfferNotFoundError: responder was never offered the request
        AlreadyClaimedError: another responder claimed it first
        AlreadyResolvedError: request is resolved
    """
    request = store.load_request(request_id)
    _require_candidate(responder, request)

    won = store.conditional_set_claimant(request.id, responder.id)
    request.refresh_from_db()

    if not won:
        if request.resolved:
            raise AlreadyResolvedError("Request is already resolved")
        if request.claimant_id != responder.id:
            raise AlreadyClaimedError("Request has already been claimed by another responder")

    # A claim that is already ours may be a retry whose first commit landed
    # unacknowledged; announce it again, the apps key notices by request id.
    _announce_claim(request, responder)
    if won:
        logger.info("Request %s claimed by user %s", request.id, responder.id)

    return DispatchResult(
        success=True,
        request=request,
        message="Request claimed" if won else "You have already claimed this request",
        extra={"requester": _public_profile(request.requester)},
    )


def _announce_claim(request: DispatchRequest, responder):
    accept_body = _public_profile(responder)
    accept_body["requestID"] = str(request.id)
    notify_user(request.requester_id, NotificationKind.ACCEPT, accept_body)

    fan_out_except(
        request.candidate_ids(),
        responder.id,
        NotificationKind.RESOLVED,
        {"id": str(request.id)},
    )


def _announce_exhaustion(request: DispatchRequest, count: int):
    body = offer_body(request)
    body["requestID"] = str(request.id)
    notify_user(request.requester_id, NotificationKind.REJECTION, body)
    logger.info("Request %s exhausted after %d declines", request.id, count)


def decline_request(responder, request_id) -> DispatchResult:
    """
    Record that `responder` will not take the request.

    A decline after someone else's claim is acknowledged without touching
    counters. When the last candidate declines, the requester is told the
    request is exhausted.

    Raises:
        RequestNotFoundError, UnauthorizedError, OfferNotFoundError
        AlreadyResolvedError: request is resolved
    """
    request = store.load_request(request_id)
    _require_candidate(responder, request)

    if request.resolved:
        raise AlreadyResolvedError("Request is already resolved")
    if request.claimant_id is not None:
        return DispatchResult(success=True, request=request, message="Request was already claimed")

    outcome = store.increment_rejection(request.id, responder.id)
    request.refresh_from_db()

    if outcome is None:
        if request.resolved:
            raise AlreadyResolvedError("Request is already resolved")
        if request.claimant_id is not None:
            return DispatchResult(success=True, request=request, message="Request was already claimed")
        # Already declined, possibly by a retry whose first commit landed
        # unacknowledged; repeat the exhaustion notice if it was due.
        count, total = request.rejection_count, request.offers.count()
        exhausted = count == total
        if exhausted:
            _announce_exhaustion(request, count)
        return DispatchResult(
            success=True,
            request=request,
            message="Already declined",
            extra={"rejection_count": count, "exhausted": exhausted},
        )

    count, total = outcome
    exhausted = count == total
    if exhausted:
        _announce_exhaustion(request, count)

    return DispatchResult(
        success=True,
        request=request,
        message="Declined",
        extra={"rejection_count": count, "exhausted": exhausted},
    )


# ===================== Queries =====================

def request_history(user):
    """
    Requests relevant to `user`, newest first.

    Clients see the requests they made; doctors the requests offered to them
    plus the transit requests they made; transit services the requests
    offered to them.
    """
    identity.require_role(user)
    queryset = DispatchRequest.objects.select_related("requester", "claimant")

    if user.role == Role.CLIENT:
        queryset = queryset.filter(requester=user)
    elif user.role == Role.DOCTOR:
        queryset = queryset.filter(Q(offers__responder=user) | Q(requester=user)).distinct()
    else:
        queryset = queryset.filter(offers__responder=user)

    return queryset.order_by("-created_at")


def get_request_for_user(user, request_id) -> DispatchRequest:
    """
    Fetch a request visible to `user` (its requester or one of its candidates).

    Raises:
        RequestNotFoundError: unknown id or not visible to the user
    """
    identity.require_role(user)
    request = store.load_request(request_id)
    if request.requester_id == user.id:
        return request
    if DispatchOffer.objects.filter(request_id=request.id, responder_id=user.id).exists():
        return request
    raise RequestNotFoundError(f"Request {request_id} not found")
