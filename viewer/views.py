"""Views for the viewer application."""

import logging

from django.conf import settings
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import render

from .console import CLEAR_ALL, CLEAR_MACHINE, confirmation_phrase
from .filters import HOURS_RANGE, LIMIT_RANGE, Filters

logger = logging.getLogger(__name__)


def health(request: HttpRequest) -> JsonResponse:
    """Health check endpoint."""
    return JsonResponse({'status': 'ok'})


def home(request: HttpRequest) -> HttpResponse:
    """Viewer page: live map, sidebar and admin tab."""
    filters = Filters.from_settings()
    center = settings.VIEWER_MAP_CENTER

    context = {
        'ws_path': '/ws/viewer/',
        'map_center_lat': center[0],
        'map_center_lon': center[1],
        'map_zoom': settings.VIEWER_MAP_ZOOM,
        'tile_url': settings.VIEWER_TILE_URL,
        'default_limit': filters.limit,
        'default_hours': filters.hours,
        'limit_min': LIMIT_RANGE[0],
        'limit_max': LIMIT_RANGE[1],
        'hours_min': HOURS_RANGE[0],
        'hours_max': HOURS_RANGE[1],
        'clear_all_phrase': confirmation_phrase(CLEAR_ALL),
        'clear_machine_phrase': confirmation_phrase(CLEAR_MACHINE),
        'api_url': settings.TRACKER_API_URL,
    }

    response = render(request, 'viewer/home.html', context)
    response['Cache-Control'] = 'no-cache, no-store, must-revalidate'
    response['Pragma'] = 'no-cache'
    response['Expires'] = '0'
    return response
