"""
WebSocket URL routing for the viewer app.

Each connection to the viewer socket hosts one live viewer session.
"""
from django.urls import path

from . import consumers

websocket_urlpatterns = [
    path('ws/viewer/', consumers.ViewerConsumer.as_asgi()),
]
