"""
Store resilience utilities.
Retry logic for transient database failures on the dispatch path.
"""

import logging
import time
from functools import wraps
from typing import Callable

from django.conf import settings
from django.db import InterfaceError, OperationalError

from .exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

# Connection drops, lock timeouts and statement timeouts surface as these
TRANSIENT_ERRORS = (OperationalError, InterfaceError)


def is_transient_error(exc: Exception) -> bool:
    """Check if a store error is transient (should retry)."""
    return isinstance(exc, TRANSIENT_ERRORS)


def retry_on_transient_error(
    max_retries: int = None,
    initial_delay: float = None,
    backoff_factor: float = 2.0,
    max_delay: float = 2.0,
):
    """
    Decorator to retry a store call on transient database errors.

    Wrapped calls must be idempotent (conditional updates, additive
    increments, get_or_create) because a failed attempt may still have
    committed. Once retries run out the failure surfaces as
    StoreUnavailableError.

    Args:
        max_retries: Retry attempts after the first call
            (default settings.DISPATCH_STORE_RETRIES)
        initial_delay: Delay before the first retry in seconds
            (default settings.DISPATCH_STORE_RETRY_DELAY)
        backoff_factor: Multiplier for delay after each retry
        max_delay: Maximum delay between retries (seconds)
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            retries = settings.DISPATCH_STORE_RETRIES if max_retries is None else max_retries
            delay = settings.DISPATCH_STORE_RETRY_DELAY if initial_delay is None else initial_delay

            for attempt in range(retries + 1):
                try:
                    return func(*args, **kwargs)
                except TRANSIENT_ERRORS as exc:
                    if attempt >= retries:
                        logger.error(
                            "Max retries (%d) exceeded in %s: %s",
                            retries, func.__name__, exc,
                        )
                        raise StoreUnavailableError(
                            "The dispatch store is temporarily unavailable"
                        ) from exc

                    logger.warning(
                        "Transient error in %s (attempt %d/%d): %s. Retrying in %.2fs...",
                        func.__name__, attempt + 1, retries, exc, delay,
                    )
                    if delay:
                        time.sleep(delay)
                    delay = min(delay * backoff_factor, max_delay)

        return wrapper
    return decorator
