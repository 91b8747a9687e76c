"""Celery tasks for notification delivery."""

import logging

from asgiref.sync import async_to_sync
from celery import shared_task
from channels.layers import get_channel_layer

from .consumers.notification_consumer import user_group
from .gateway import PushDeliveryError, get_push_gateway, has_device_handle

logger = logging.getLogger(__name__)


def push_to_device(device_id, kind: str, body: dict) -> bool:
    """
    Send one notification through the push gateway.

    An absent or sentinel handle is a silent no-op; delivery failures are
    logged, never raised.
    """
    if not has_device_handle(device_id):
        return False
    try:
        get_push_gateway().send(device_id, kind, body)
    except PushDeliveryError as exc:
        logger.warning("Push '%s' to device %s... failed: %s", kind, device_id[:8], exc)
        return False
    return True


def _mirror_to_socket(user_id: int, kind: str, body: dict) -> bool:
    """Copy the notification onto the user's personal WebSocket group: user_<id>"""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return False
    try:
        async_to_sync(channel_layer.group_send)(
            user_group(user_id),
            {"type": "dispatch.notification", "kind": kind, "body": body},
        )
    except Exception:
        logger.exception("Failed to mirror '%s' to user_%s", kind, user_id)
        return False
    return True


@shared_task(ignore_result=True)
def deliver_to_user_task(user_id: int, kind: str, body: dict) -> bool:
    """
    Look up the user's current device handle and deliver to it.

    The lookup happens here, per recipient, so a fan-out is one independent
    job per user and a missing user or handle only skips that job.
    """
    from accounts.models import User

    _mirror_to_socket(user_id, kind, body)

    device_id = User.objects.filter(pk=user_id).values_list("device_id", flat=True).first()
    if not has_device_handle(device_id):
        logger.debug("User %s has no device handle, skipping '%s'", user_id, kind)
        return False
    return push_to_device(device_id, kind, body)
