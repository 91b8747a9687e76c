"""
Request store primitives.

Every state change on a DispatchRequest goes through one of the functions
below. Each runs in its own transaction and is built from conditional
updates, F() increments and the (request, responder) unique constraint, so
a retry after an unknown outcome can never apply the change twice.
"""

import logging
import uuid
from typing import Iterable, List, Optional, Tuple

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F, Value
from django.db.models.functions import Greatest
from django.utils import timezone

from dispatch.models import DispatchOffer, DispatchRequest
from responders.services import record_acceptance, record_offers
from .exceptions import RequestNotFoundError
from .resilience import retry_on_transient_error

logger = logging.getLogger(__name__)


@retry_on_transient_error()
def load_request(request_id) -> DispatchRequest:
    """
    Fetch a request with its requester and claimant.

    Raises:
        RequestNotFoundError: unknown or malformed id
    """
    try:
        return DispatchRequest.objects.select_related(
            "requester", "claimant", "parent"
        ).get(pk=request_id)
    except (DispatchRequest.DoesNotExist, ValidationError, ValueError):
        raise RequestNotFoundError(f"Request {request_id} not found")


@retry_on_transient_error()
@transaction.atomic
def persist_request(
    request_id: uuid.UUID,
    *,
    requester,
    responder_class: str,
    lat: float,
    lon: float,
    note: str,
    radius: float,
    candidate_ids: List[int],
    parent: Optional[DispatchRequest] = None,
) -> Tuple[DispatchRequest, bool]:
    """
    Insert the request, its offers and the offered-count increments in one
    transaction.

    `request_id` is chosen by the caller before the first attempt; if an
    attempt that reported failure actually committed, the retry finds the
    row and returns it instead of inserting again.

    Returns:
        (request, created)
    """
    existing = DispatchRequest.objects.filter(pk=request_id).first()
    if existing is not None:
        logger.info("Request %s already persisted by an earlier attempt", request_id)
        return existing, False

    request = DispatchRequest.objects.create(
        id=request_id,
        requester=requester,
        responder_class=responder_class,
        parent=parent,
        origin_latitude=float(lat),
        origin_longitude=float(lon),
        note=note or "",
        search_radius=float(radius),
    )
    DispatchOffer.objects.bulk_create(
        [DispatchOffer(request=request, responder_id=user_id) for user_id in candidate_ids]
    )
    record_offers(candidate_ids)
    return request, True


@retry_on_transient_error()
@transaction.atomic
def append_candidates(request_id, candidate_ids: Iterable[int], radius: float) -> Optional[List[int]]:
    """
    Add the candidates not yet offered the request. The stored search
    radius only ever grows.

    Existing offers are skipped by get_or_create, whose unique constraint
    also settles two escalations racing for the same responder. Only the
    rows this call created are counted and returned.

    Returns:
        Newly added user ids in order, or None if the request is resolved
    """
    now = timezone.now()
    touched = DispatchRequest.objects.filter(pk=request_id, resolved=False).update(
        search_radius=Greatest(F("search_radius"), Value(float(radius))), updated_at=now
    )
    if not touched:
        return None

    added = []
    for user_id in candidate_ids:
        _, created = DispatchOffer.objects.get_or_create(
            request_id=request_id, responder_id=user_id
        )
        if created:
            added.append(user_id)

    record_offers(added)
    return added


@retry_on_transient_error()
@transaction.atomic
def conditional_set_claimant(request_id, responder_id: int) -> bool:
    """
    Set the claimant only if the request is unclaimed and unresolved.

    The accepted-count increment commits together with the claim, so a
    retried claim that already won never counts twice.

    Returns:
        True if this call set the claimant
    """
    now = timezone.now()
    won = DispatchRequest.objects.filter(
        pk=request_id, claimant__isnull=True, resolved=False
    ).update(claimant_id=responder_id, claimed_at=now, updated_at=now)

    if won:
        record_acceptance(responder_id)
    return bool(won)


@retry_on_transient_error()
@transaction.atomic
def increment_rejection(request_id, responder_id: int) -> Optional[Tuple[int, int]]:
    """
    Record one responder's decline.

    The offer is marked declined once; the rejection count only moves while
    the request is unclaimed and unresolved. The post-increment count is
    read inside the same transaction, after the row lock taken by the
    update, so concurrent decliners each observe a distinct value.

    Returns:
        (rejection_count, candidate_count) if the count moved, else None
    """
    now = timezone.now()
    marked = DispatchOffer.objects.filter(
        request_id=request_id, responder_id=responder_id, declined_at__isnull=True
    ).update(declined_at=now)
    if not marked:
        return None

    bumped = DispatchRequest.objects.filter(
        pk=request_id, claimant__isnull=True, resolved=False
    ).update(rejection_count=F("rejection_count") + 1, updated_at=now)
    if not bumped:
        return None

    count = DispatchRequest.objects.filter(pk=request_id).values_list(
        "rejection_count", flat=True
    ).get()
    total = DispatchOffer.objects.filter(request_id=request_id).count()
    return count, total


@retry_on_transient_error()
def set_resolved(request_id) -> bool:
    """
    Flip `resolved` from False to True.

    Returns:
        True only for the call that performed the transition
    """
    now = timezone.now()
    return bool(
        DispatchRequest.objects.filter(pk=request_id, resolved=False).update(
            resolved=True, resolved_at=now, updated_at=now
        )
    )
