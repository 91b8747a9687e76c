"""WebSocket consumer mirroring dispatch notifications to connected clients."""

import logging
from typing import Any, Dict

from channels.generic.websocket import AsyncJsonWebsocketConsumer

logger = logging.getLogger(__name__)


def user_group(user_id) -> str:
    """Personal group of one account; server-side code sends to it by id."""
    return f"user_{user_id}"


class NotificationConsumer(AsyncJsonWebsocketConsumer):
    """
    Live feed of the notifications also sent by push.

    Server-side code sends {"type": "dispatch.notification", "kind", "body"}
    to user_<id>; the client receives {"type": kind, "body": body}. The only
    client message understood is {"type": "ping"}.
    """

    group_name = None

    async def connect(self):
        user = self.scope.get("user")
        if user is None or user.is_anonymous:
            await self.close()
            return

        self.user_id = user.id
        self.group_name = user_group(user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": getattr(user, "role", None),
        })

    async def disconnect(self, close_code):
        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive_json(self, content: Dict[str, Any], **kwargs):
        msg_type = content.get("type") if isinstance(content, dict) else None
        if msg_type == "ping":
            await self.send_json({"type": "pong"})
        elif not msg_type:
            await self.send_json({"type": "error", "message": "Message type is required"})
        else:
            logger.debug("Ignoring '%s' from user %s", msg_type, self.user_id)
            await self.send_json({"type": "error", "message": f"Unknown message type: {msg_type}"})

    async def dispatch_notification(self, event):
        """Handler for group_send events from realtime.tasks."""
        await self.send_json({
            "type": event.get("kind"),
            "body": event.get("body", {}),
        })
