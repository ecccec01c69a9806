"""
Map view model: markers, recency tiers and the viewport policy.

The browser draws whatever ``render_map`` returns; every decision about
what is shown and where the map looks is made here.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from django.conf import settings
from django.utils import timezone

from .formatting import UNKNOWN, format_timestamp
from .records import Location
from .state import ViewerSnapshot

FRESH = 'fresh'
RECENT = 'recent'
OLD = 'old'
STALE = 'stale'

# Upper bound in hours (exclusive) for each tier, checked in order
TIER_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (1, FRESH),
    (6, RECENT),
    (24, OLD),
)

TIER_COLORS: dict[str, str] = {
    FRESH: '#4caf50',
    RECENT: '#ff9800',
    OLD: '#f44336',
    STALE: '#9e9e9e',
}

SELECTED_ZOOM = 15
FIT_PADDING = 20

EMPTY_NOTICE = 'No locations to show. Select a machine or adjust the filters.'


def hours_since(moment: datetime | None, now: datetime) -> float | None:
    if moment is None:
        return None
    return (now - moment).total_seconds() / 3600


def marker_tier(location: Location, now: datetime | None = None) -> str:
    """Bucket a location by the age of its timestamp; unknown age is stale."""
    age = hours_since(location.recorded_at, now or timezone.now())
    if age is None:
        return STALE
    for limit, tier in TIER_THRESHOLDS:
        if age < limit:
            return tier
    return STALE


@dataclass(frozen=True)
class PopupRow:
    label: str
    value: str


def popup_rows(location: Location) -> tuple[PopupRow, ...]:
    """Labelled popup lines; absent optional fields read as unknown."""
    place = ', '.join(part for part in (location.city, location.country) if part)
    accuracy = f"{location.accuracy:g}m" if location.accuracy is not None else UNKNOWN
    return (
        PopupRow('Machine', location.machine_name or UNKNOWN),
        PopupRow('User', location.user_name or UNKNOWN),
        PopupRow('Time', format_timestamp(location.recorded_at)),
        PopupRow('Place', place or UNKNOWN),
        PopupRow('Accuracy', accuracy),
        PopupRow('Source', location.location_source or UNKNOWN),
        PopupRow('Coordinates', f"{location.latitude:.6f}, {location.longitude:.6f}"),
    )


@dataclass(frozen=True)
class Marker:
    id: Any
    latitude: float
    longitude: float
    tier: str
    color: str
    selected: bool
    popup: tuple[PopupRow, ...]
    fields: dict[str, Any]


@dataclass(frozen=True)
class Viewport:
    """
    Where the map should look.

    ``mode`` is ``center`` (zoom on one point), ``fit`` (show every
    location within ``bounds``) or ``keep`` (leave the map where it is).
    """

    mode: str
    center: tuple[float, float] | None = None
    zoom: int | None = None
    bounds: tuple[tuple[float, float], tuple[float, float]] | None = None
    padding: int | None = None


@dataclass(frozen=True)
class MapModel:
    loading: bool
    markers: tuple[Marker, ...]
    viewport: Viewport
    empty_notice: str | None
    default_center: tuple[float, float]
    default_zoom: int


def compute_viewport(
    locations: tuple[Location, ...] | list[Location],
    selected: Location | None,
) -> Viewport:
    """Center on the selection, else fit every location; keep when empty."""
    if not locations:
        return Viewport(mode='keep')
    if selected is not None:
        return Viewport(
            mode='center',
            center=(selected.latitude, selected.longitude),
            zoom=SELECTED_ZOOM,
        )
    latitudes = [location.latitude for location in locations]
    longitudes = [location.longitude for location in locations]
    return Viewport(
        mode='fit',
        bounds=((min(latitudes), min(longitudes)), (max(latitudes), max(longitudes))),
        padding=FIT_PADDING,
    )


def build_marker(location: Location, selected: Location | None, now: datetime) -> Marker:
    tier = marker_tier(location, now)
    return Marker(
        id=location.id,
        latitude=location.latitude,
        longitude=location.longitude,
        tier=tier,
        color=TIER_COLORS[tier],
        selected=location.is_same(selected),
        popup=popup_rows(location),
        fields=dict(location.fields),
    )


def render_map(snapshot: ViewerSnapshot, now: datetime | None = None) -> MapModel:
    """
    Build the map model for a snapshot.

    While loading, markers are suppressed (the page shows a spinner). With
    no locations the viewport is kept and an empty-state notice is shown.
    """
    now = now or timezone.now()
    center = getattr(settings, 'VIEWER_MAP_CENTER', (-12.0464, -77.0428))
    default_center = (float(center[0]), float(center[1]))
    default_zoom = getattr(settings, 'VIEWER_MAP_ZOOM', 10)

    if snapshot.loading:
        return MapModel(
            loading=True,
            markers=(),
            viewport=Viewport(mode='keep'),
            empty_notice=None,
            default_center=default_center,
            default_zoom=default_zoom,
        )

    markers = tuple(
        build_marker(location, snapshot.selected_location, now)
        for location in snapshot.locations
    )
    return MapModel(
        loading=False,
        markers=markers,
        viewport=compute_viewport(snapshot.locations, snapshot.selected_location),
        empty_notice=None if markers else EMPTY_NOTICE,
        default_center=default_center,
        default_zoom=default_zoom,
    )
