"""
Websocket authentication middleware.

The handshake carries the same access token as the REST API, either as
`?token=<jwt>` or as an `Authorization: Bearer <jwt>` header.
"""
from urllib.parse import parse_qs
import logging

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)


def token_from_scope(scope):
    query = parse_qs(scope.get('query_string', b'').decode())
    if query.get('token'):
        return query['token'][0]
    for name, value in scope.get('headers', []):
        if name == b'authorization':
            parts = value.decode().split()
            if len(parts) == 2 and parts[0] in api_settings.AUTH_HEADER_TYPES:
                return parts[1]
    return None


@database_sync_to_async
def get_user_for_token(raw_token):
    from .models import User

    try:
        token = AccessToken(raw_token)
    except TokenError as exc:
        logger.info(f"Rejected websocket token: {exc}")
        return AnonymousUser()
    user = User.objects.filter(pk=token[api_settings.USER_ID_CLAIM], is_active=True).first()
    return user or AnonymousUser()


class JWTAuthMiddleware(BaseMiddleware):
    """Populate scope['user'] from the handshake's JWT."""

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        raw_token = token_from_scope(scope)
        scope['user'] = await get_user_for_token(raw_token) if raw_token else AnonymousUser()
        return await super().__call__(scope, receive, send)


def JWTAuthMiddlewareStack(inner):
    return JWTAuthMiddleware(inner)
