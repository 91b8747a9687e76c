"""
Push notification gateways.

A gateway delivers one data message to one device handle. The concrete
class comes from settings.PUSH_GATEWAY_BACKEND:

    - realtime.gateway.FirebasePushGateway: Firebase Cloud Messaging
    - realtime.gateway.LoggingPushGateway: dry run, only logs the message
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

# Handles stored by old clients when they had no registration token
_ABSENT_HANDLES = {"", "none", "null"}


class PushDeliveryError(Exception):
    """Raised by a gateway when a message could not be delivered."""
    pass


def has_device_handle(device_id: Optional[str]) -> bool:
    """True if `device_id` is a usable push handle (not absent or a sentinel)."""
    if device_id is None:
        return False
    return str(device_id).strip().lower() not in _ABSENT_HANDLES


def build_data_message(kind: str, body: Dict[str, Any]) -> Dict[str, str]:
    """FCM data payloads are flat string maps: the kind is the title, the body is JSON."""
    return {
        "title": kind,
        "body": json.dumps(body, cls=DjangoJSONEncoder),
    }


class PushGateway:
    """Base gateway; subclasses implement send()."""

    def send(self, device_id: str, kind: str, body: Dict[str, Any]) -> str:
        """
        Deliver one notification.

        Returns:
            A provider message id
        Raises:
            PushDeliveryError: delivery failed
        """
        raise NotImplementedError


class LoggingPushGateway(PushGateway):
    """Dry-run gateway used in development and tests."""

    def send(self, device_id: str, kind: str, body: Dict[str, Any]) -> str:
        logger.info("[push DRY_RUN] %s -> %s...: %s", kind, device_id[:8], build_data_message(kind, body))
        return "dry-run"


class FirebasePushGateway(PushGateway):
    """Firebase Cloud Messaging via firebase-admin."""

    def __init__(self):
        import firebase_admin
        from firebase_admin import credentials

        if not firebase_admin._apps:
            cred_path = settings.FIREBASE_CREDENTIALS_PATH
            cred = credentials.Certificate(cred_path) if cred_path else credentials.ApplicationDefault()
            firebase_admin.initialize_app(cred, {"httpTimeout": settings.PUSH_HTTP_TIMEOUT})
            logger.info("Firebase app initialised for push delivery")

    def send(self, device_id: str, kind: str, body: Dict[str, Any]) -> str:
        from firebase_admin import exceptions, messaging

        message = messaging.Message(
            token=device_id,
            data=build_data_message(kind, body),
            android=messaging.AndroidConfig(priority="high"),
        )
        try:
            return messaging.send(message)
        except (exceptions.FirebaseError, ValueError) as exc:
            raise PushDeliveryError(str(exc)) from exc


@lru_cache(maxsize=1)
def get_push_gateway() -> PushGateway:
    """Instantiate the configured gateway once per process."""
    gateway_class = import_string(settings.PUSH_GATEWAY_BACKEND)
    return gateway_class()
