"""WebSocket authentication middleware for JWT and Cookie-based auth."""

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

User = get_user_model()
logger = logging.getLogger(__name__)


@database_sync_to_async
def _active_user(user_id):
    return User.objects.filter(pk=user_id, is_active=True).first()


class JWTOrCookieAuthMiddleware(BaseMiddleware):
    """
    Authenticate WebSocket connections using either:
    1. JWT in querystring (?token=...) - mobile apps
    2. An already populated session user - browsers behind AuthMiddlewareStack
    """

    async def __call__(self, scope, receive, send):
        params = parse_qs(scope.get("query_string", b"").decode())
        token_list = params.get("token")

        if token_list:
            scope["user"] = await self._user_from_token(token_list[0])
        else:
            scope["user"] = scope.get("user") or AnonymousUser()

        return await super().__call__(scope, receive, send)

    async def _user_from_token(self, token):
        try:
            access = AccessToken(token)
        except TokenError as exc:
            logger.debug("JWT auth failed: %s", exc)
            return AnonymousUser()

        user = await _active_user(access[api_settings.USER_ID_CLAIM])
        return user or AnonymousUser()
