"""Realtime consumers for WebSocket communication."""

from .notification_consumer import NotificationConsumer, user_group

__all__ = [
    "NotificationConsumer",
    "user_group",
]
