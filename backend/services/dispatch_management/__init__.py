"""
Dispatch management service - SOS and transit request lifecycle.

This module handles:
    - Broadcasting requests to nearby responders
    - Escalating to a wider radius
    - Claiming/declining requests
    - Resolving requests
    - Querying request history
"""

from .lifecycle import (
    DispatchResult,
    create_request,
    create_transit_request,
    escalate_request,
    claim_request,
    decline_request,
    resolve_request,
    request_history,
    get_request_for_user,
)

from .exceptions import (
    DispatchError,
    UnauthorizedError,
    NotFoundError,
    RequestNotFoundError,
    OfferNotFoundError,
    ResponderNotFoundError,
    RangeExceededError,
    AlreadyClaimedError,
    AlreadyResolvedError,
    StoreUnavailableError,
)

__all__ = [
    # Lifecycle operations
    "DispatchResult",
    "create_request",
    "create_transit_request",
    "escalate_request",
    "claim_request",
    "decline_request",
    "resolve_request",
    "request_history",
    "get_request_for_user",
    # Exceptions
    "DispatchError",
    "UnauthorizedError",
    "NotFoundError",
    "RequestNotFoundError",
    "OfferNotFoundError",
    "ResponderNotFoundError",
    "RangeExceededError",
    "AlreadyClaimedError",
    "AlreadyResolvedError",
    "StoreUnavailableError",
]
