"""
Custom exceptions for SOS dispatch.

Every error carries a stable `error_code` and the HTTP status the API
layer answers with.
"""


class DispatchError(Exception):
    """Base class for dispatch engine errors."""
    error_code = "dispatch_error"
    http_status = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class UnauthorizedError(DispatchError):
    """Raised on a credential mismatch, unknown identity or wrong role."""
    error_code = "unauthorized"
    http_status = 401


class NotFoundError(DispatchError):
    """Raised when a request, offer or responder cannot be found."""
    error_code = "not_found"
    http_status = 404


class RequestNotFoundError(NotFoundError):
    """Raised when a dispatch request cannot be found."""
    error_code = "request_not_found"


class OfferNotFoundError(NotFoundError):
    """Raised when the responder was never offered the request."""
    error_code = "offer_not_found"


class ResponderNotFoundError(NotFoundError):
    """Raised when a responder profile cannot be found."""
    error_code = "responder_not_found"


class RangeExceededError(DispatchError):
    """Raised when a search radius is not positive or above the maximum."""
    error_code = "range_exceeded"
    http_status = 400


class AlreadyClaimedError(DispatchError):
    """Raised when another responder has already claimed the request."""
    error_code = "already_claimed"
    http_status = 409


class AlreadyResolvedError(DispatchError):
    """Raised when a resolved request is mutated."""
    error_code = "already_resolved"
    http_status = 409


class StoreUnavailableError(DispatchError):
    """Raised when the store keeps failing after bounded retries."""
    error_code = "store_unavailable"
    http_status = 503
