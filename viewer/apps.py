"""App configuration for the viewer application."""
from django.apps import AppConfig


class ViewerConfig(AppConfig):
    """Configuration for the viewer app."""

    default_auto_field: str = 'django.db.models.BigAutoField'
    name: str = 'viewer'
    verbose_name: str = 'Location Viewer'
