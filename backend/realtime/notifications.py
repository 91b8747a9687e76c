"""
Notification coordinator for dispatch events.

This module provides functions to:
- Notify one user (the job resolves the user's device handle)
- Fan a notification out to every candidate of a request but one

Every send is a Celery job; callers never wait for delivery and a failed
submission or delivery is only logged. Users without a device handle are
skipped silently.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from celery import group

from .tasks import deliver_to_user_task

logger = logging.getLogger(__name__)


class NotificationKind:
    """Titles of the data messages understood by the mobile apps."""
    SOS = "sos"
    TRANSIT = "transit"
    ACCEPT = "accept"
    RESOLVED = "resolved"
    REJECTION = "rejection"


def notify_user(user_id: Optional[int], kind: str, body: Dict[str, Any]) -> bool:
    """
    Submit a notification for one user without waiting for delivery.

    Returns:
        True if a delivery job was submitted
    """
    if not user_id:
        return False
    try:
        deliver_to_user_task.delay(user_id, kind, body)
    except Exception:
        logger.exception("Failed to submit '%s' notification for user %s", kind, user_id)
        return False
    logger.debug("Queued '%s' for user_%s", kind, user_id)
    return True


def fan_out_except(
    candidate_ids: Iterable[int],
    excluded_id: Optional[int],
    kind: str,
    body: Dict[str, Any],
) -> int:
    """
    Notify every candidate except `excluded_id`, in parallel.

    One job per recipient is submitted as a Celery group, so a failing
    recipient never aborts the others.

    Returns:
        Number of recipients a job was submitted for
    """
    recipients = []
    for user_id in candidate_ids:
        if user_id != excluded_id and user_id not in recipients:
            recipients.append(user_id)

    if not recipients:
        return 0

    try:
        group(deliver_to_user_task.s(user_id, kind, body) for user_id in recipients).apply_async()
    except Exception:
        logger.exception("Failed to submit '%s' fan-out to %d recipients", kind, len(recipients))
        return 0

    logger.info("Fanned out '%s' to %d recipients", kind, len(recipients))
    return len(recipients)
