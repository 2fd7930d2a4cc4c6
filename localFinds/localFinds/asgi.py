"""
ASGI config for localFinds project.

HTTP goes to Django, websockets go through JWT auth to the chat consumer.
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'localFinds.settings')

# Initialize Django before importing anything that touches models
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter
from channels.security.websocket import OriginValidator
from django.conf import settings

from marketplace.middleware import JWTAuthMiddlewareStack
from marketplace.routing import websocket_urlpatterns

application = ProtocolTypeRouter({
    'http': django_asgi_app,
    'websocket': OriginValidator(
        JWTAuthMiddlewareStack(URLRouter(websocket_urlpatterns)),
        [settings.FRONTEND_URL, *settings.ALLOWED_HOSTS],
    ),
})
