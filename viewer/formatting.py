"""Human-readable renderings of times shared by the sidebar and admin panel."""
from datetime import datetime

from django.utils import timezone

UNKNOWN = 'Unknown'


def format_time_ago(moment: datetime | None, now: datetime | None = None) -> str:
    """Describe how long ago ``moment`` was, e.g. ``5 min ago``."""
    if moment is None:
        return UNKNOWN
    seconds = ((now or timezone.now()) - moment).total_seconds()
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 1:
        return 'Just now'
    if minutes < 60:
        return f"{minutes} min ago"
    if hours < 24:
        return f"{hours}h ago"
    if days == 1:
        return 'Yesterday'
    return f"{days} days ago"


def status_color(moment: datetime | None, now: datetime | None = None) -> str:
    """Badge color for a machine by how recently it was seen."""
    if moment is None:
        return 'error'
    hours = ((now or timezone.now()) - moment).total_seconds() / 3600
    if hours < 1:
        return 'success'
    if hours < 6:
        return 'warning'
    return 'error'


def format_timestamp(moment: datetime | None) -> str:
    if moment is None:
        return UNKNOWN
    return timezone.localtime(moment).strftime('%Y-%m-%d %H:%M:%S')
