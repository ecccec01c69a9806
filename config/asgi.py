"""
ASGI config for the location viewer project.

It exposes the ASGI callable as a module-level variable named ``application``.

For more information on this file, see
https://docs.djangoproject.com/en/5.0/howto/deployment/asgi/
"""

import asyncio
import logging
import os
from typing import Any, Callable, cast

from channels.routing import ProtocolTypeRouter, URLRouter
from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

# Initialize Django ASGI application early to ensure the AppRegistry
# is populated before importing code that may import ORM models.
django_asgi_app = get_asgi_application()

from viewer.routing import websocket_urlpatterns  # noqa: E402

logger = logging.getLogger(__name__)


class ClientDisconnectMiddleware:
    """
    Swallow the CancelledError raised when a browser drops an HTTP request.

    Daphne cancels the request task on disconnect; without this wrapper the
    cancellation reaches the event loop handler and is logged as an error.
    """

    def __init__(self, app: Callable[..., Any]) -> None:
        self.app = app

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        try:
            await self.app(scope, receive, send)
        except asyncio.CancelledError:
            method = scope.get('method', '')
            path = scope.get('path', '')
            logger.debug("Client disconnected during %s %s", method, path)


application = ProtocolTypeRouter({
    "http": ClientDisconnectMiddleware(django_asgi_app),
    "websocket": URLRouter(
        cast(list, websocket_urlpatterns)  # type: ignore[arg-type]
    ),
})
