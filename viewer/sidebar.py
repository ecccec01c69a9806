"""
Sidebar and header view models.

The sidebar shows the filters, quick statistics, the machine list, the
location list and the details of the selected location.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from django.utils import timezone

from .filters import HOURS_RANGE, LIMIT_RANGE, Filters
from .formatting import (UNKNOWN, format_time_ago, format_timestamp,
                         status_color)
from .records import Location, Machine
from .state import ViewerSnapshot

UNKNOWN_CITY = 'Unknown city'
UNKNOWN_COUNTRY = 'Unknown country'


@dataclass(frozen=True)
class FilterControls:
    limit: int
    hours: int
    limit_range: tuple[int, int] = LIMIT_RANGE
    hours_range: tuple[int, int] = HOURS_RANGE


@dataclass(frozen=True)
class MachineRow:
    name: str
    count: int
    status: str
    last_seen: str
    selected: bool


@dataclass(frozen=True)
class LocationRow:
    id: Any
    machine_name: str
    place: str
    time_ago: str
    coordinates: str
    selected: bool


@dataclass(frozen=True)
class DetailField:
    label: str
    value: str


@dataclass(frozen=True)
class SidebarModel:
    filters: FilterControls
    total_locations: int | None
    unique_machines: int | None
    machines: tuple[MachineRow, ...]
    show_all_button: bool
    error: str | None
    locations_title: str
    loading: bool
    locations: tuple[LocationRow, ...]
    empty_message: str | None
    detail: tuple[DetailField, ...]


@dataclass(frozen=True)
class HeaderModel:
    scope: str
    location_count: int


def machine_row(machine: Machine, selected_machine: str, now: datetime) -> MachineRow:
    return MachineRow(
        name=machine.name,
        count=machine.count,
        status=status_color(machine.last_seen, now),
        last_seen=format_time_ago(machine.last_seen, now),
        selected=machine.name == selected_machine,
    )


def location_row(location: Location, selected: Location | None, now: datetime) -> LocationRow:
    return LocationRow(
        id=location.id,
        machine_name=location.machine_name,
        place=f"{location.city or UNKNOWN_CITY}, {location.country or UNKNOWN_COUNTRY}",
        time_ago=format_time_ago(location.recorded_at, now),
        coordinates=f"{location.latitude:.4f}, {location.longitude:.4f}",
        selected=location.is_same(selected),
    )


def location_detail(location: Location | None) -> tuple[DetailField, ...]:
    """Detail fields for the selected location; optional extras only when present."""
    if location is None:
        return ()
    fields = [
        DetailField('Machine', location.machine_name or UNKNOWN),
        DetailField('User', location.user_name or UNKNOWN),
        DetailField('Timestamp', format_timestamp(location.recorded_at)),
        DetailField('Source', location.location_source or UNKNOWN),
    ]
    if location.accuracy:
        fields.append(DetailField('Accuracy', f"{location.accuracy:g}m"))
    if location.public_ip:
        fields.append(DetailField('Public IP', location.public_ip))
    return tuple(fields)


def empty_message(snapshot: ViewerSnapshot) -> str | None:
    if snapshot.locations or snapshot.loading:
        return None
    if snapshot.selected_machine:
        return (
            f"No locations for {snapshot.selected_machine} "
            f"in the last {snapshot.filters.hours} hours"
        )
    return 'No locations available'


def render_sidebar(snapshot: ViewerSnapshot, now: datetime | None = None) -> SidebarModel:
    now = now or timezone.now()
    filters: Filters = snapshot.filters
    scope = f"for {snapshot.selected_machine}" if snapshot.selected_machine else 'recent'
    return SidebarModel(
        filters=FilterControls(limit=filters.limit, hours=filters.hours),
        total_locations=snapshot.stats.total_locations if snapshot.stats else None,
        unique_machines=snapshot.stats.unique_machines if snapshot.stats else None,
        machines=tuple(
            machine_row(machine, snapshot.selected_machine, now)
            for machine in snapshot.machines
        ),
        show_all_button=bool(snapshot.selected_machine),
        error=snapshot.error,
        locations_title=f"Locations {scope} ({len(snapshot.locations)})",
        loading=snapshot.loading,
        locations=tuple(
            location_row(location, snapshot.selected_location, now)
            for location in snapshot.locations
        ),
        empty_message=empty_message(snapshot),
        detail=location_detail(snapshot.selected_location),
    )


def render_header(snapshot: ViewerSnapshot) -> HeaderModel:
    return HeaderModel(
        scope=snapshot.selected_machine or 'All machines',
        location_count=len(snapshot.locations),
    )
