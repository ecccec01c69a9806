"""Tests for viewer page views."""

from django.test import Client
from hamcrest import assert_that, contains_string, equal_to
from rest_framework import status


class TestViewerViews:
    """Test the page and health endpoints."""

    def test_home_view_returns_html(self, client: Client) -> None:
        """Test that the home view returns HTML content."""
        response = client.get('/')

        assert_that(response.status_code, equal_to(status.HTTP_200_OK))
        assert_that(response['Content-Type'], contains_string('text/html'))

    def test_home_view_contains_expected_elements(self, client: Client) -> None:
        """Test that the home view carries the map, tabs and socket path."""
        content = client.get('/').content.decode('utf-8')

        assert_that(content, contains_string('<!DOCTYPE html>'))
        assert_that(content, contains_string('<title>Location Viewer</title>'))
        assert_that(content, contains_string('leaflet'))
        assert_that(content, contains_string('id="map"'))
        assert_that(content, contains_string('id="admin"'))
        assert_that(content, contains_string('/ws/viewer/'))

    def test_home_view_uses_configured_defaults(self, client: Client, settings) -> None:
        """Test that filter bounds and defaults come from settings."""
        settings.VIEWER_DEFAULT_LIMIT = 250
        settings.VIEWER_MAP_CENTER = (40.4168, -3.7038)

        content = client.get('/').content.decode('utf-8')

        assert_that(content, contains_string('name="limit" value="250" min="10" max="1000"'))
        assert_that(content, contains_string('name="hours" value="24" min="1" max="168"'))
        assert_that(content, contains_string('setView([40.4168, -3.7038]'))

    def test_home_view_no_cache_headers(self, client: Client) -> None:
        """Test that the home view sets no-cache headers."""
        response = client.get('/')

        assert_that(response['Cache-Control'], contains_string('no-cache'))
        assert_that(response['Pragma'], equal_to('no-cache'))
        assert_that(response['Expires'], equal_to('0'))

    def test_health(self, client: Client) -> None:
        response = client.get('/health/')

        assert_that(response.status_code, equal_to(status.HTTP_200_OK))
        assert_that(response.json(), equal_to({'status': 'ok'}))
