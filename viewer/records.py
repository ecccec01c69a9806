"""
Immutable records decoded from tracking backend responses.

Records are never mutated by the viewer: each successful load replaces the
whole working set. Every record keeps the payload it was decoded from in
``fields`` so nothing the backend sent is lost on the way to the page.
"""
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from rest_framework import serializers

from .exceptions import ValidationError
from .serializers import (ClearResultSerializer, DatabaseInfoSerializer,
                          LocationSerializer, MachineSerializer,
                          StatsSerializer)

logger = logging.getLogger(__name__)


def _frozen(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(payload))


def _validated(
    serializer_class: type[serializers.Serializer],
    payload: Any,
    kind: str,
) -> dict[str, Any]:
    """Run a serializer over one payload, raising ValidationError on rejection."""
    if not isinstance(payload, Mapping):
        raise ValidationError(
            f"Expected an object for {kind}, got {type(payload).__name__}"
        )
    serializer = serializer_class(data=dict(payload))
    if not serializer.is_valid():
        raise ValidationError(f"Invalid {kind}: {dict(serializer.errors)}")
    return dict(serializer.validated_data)


@dataclass(frozen=True)
class Location:
    """A single reported device position."""

    id: Any
    machine_name: str
    latitude: float
    longitude: float
    user_name: str | None = None
    accuracy: float | None = None
    location_source: str | None = None
    city: str | None = None
    country: str | None = None
    public_ip: str | None = None
    created_at: datetime | None = None
    timestamp: datetime | None = None
    fields: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({}), compare=False, repr=False
    )

    @classmethod
    def from_payload(cls, payload: Any) -> 'Location':
        data = _validated(LocationSerializer, payload, 'location')
        return cls(
            id=data.get('id'),
            machine_name=data.get('machine_name') or '',
            latitude=data['latitude'],
            longitude=data['longitude'],
            user_name=data.get('user_name'),
            accuracy=data.get('accuracy'),
            location_source=data.get('location_source'),
            city=data.get('city'),
            country=data.get('country'),
            public_ip=data.get('public_ip'),
            created_at=data.get('created_at'),
            timestamp=data.get('timestamp'),
            fields=_frozen(payload),
        )

    @property
    def recorded_at(self) -> datetime | None:
        """When the position was reported, preferring ``created_at``."""
        return self.created_at or self.timestamp

    def is_same(self, other: 'Location | None') -> bool:
        """Same record as ``other``; records without an id match only themselves."""
        if other is None:
            return False
        if self.id is None or other.id is None:
            return self is other
        return self.id == other.id


@dataclass(frozen=True)
class Machine:
    """A tracked device, identified by name."""

    name: str
    count: int = 0
    last_seen: datetime | None = None
    fields: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({}), compare=False, repr=False
    )

    @classmethod
    def from_payload(cls, payload: Any) -> 'Machine':
        data = _validated(MachineSerializer, payload, 'machine')
        return cls(
            name=data['name'],
            count=data['count'],
            last_seen=data['last_seen'],
            fields=_frozen(payload),
        )


@dataclass(frozen=True)
class Stats:
    """Aggregate statistics snapshot, replaced wholesale on every load."""

    total_locations: int = 0
    unique_machines: int = 0

    @classmethod
    def from_payload(cls, payload: Any) -> 'Stats':
        data = _validated(StatsSerializer, payload, 'statistics')
        return cls(
            total_locations=data.get('total_locations') or 0,
            unique_machines=data.get('unique_machines') or 0,
        )


@dataclass(frozen=True)
class DatabaseInfo:
    """Read-only diagnostic snapshot of the backend's data store."""

    size_mb: float | None = None
    size_human: str | None = None
    last_modified: datetime | None = None
    total_records: int | None = None
    page_count: int | None = None
    page_size: int | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> 'DatabaseInfo':
        data = _validated(DatabaseInfoSerializer, payload, 'database info')
        file_info = data.get('file') or {}
        statistics = data.get('statistics') or {}
        sqlite = data.get('sqlite') or {}
        return cls(
            size_mb=file_info.get('size_mb'),
            size_human=file_info.get('size_human'),
            last_modified=file_info.get('last_modified'),
            total_records=statistics.get('total_records'),
            page_count=sqlite.get('page_count'),
            page_size=sqlite.get('page_size'),
        )


@dataclass(frozen=True)
class ClearResult:
    """Acknowledgement returned by a delete operation."""

    message: str
    deleted_records: int

    @classmethod
    def from_payload(cls, payload: Any) -> 'ClearResult':
        data = _validated(ClearResultSerializer, payload, 'delete result')
        return cls(message=data['message'], deleted_records=data['deleted_records'])


def decode_many(record_class: Any, items: Any, kind: str) -> list[Any]:
    """
    Decode a list of payloads, skipping records that fail validation.

    Args:
        record_class: Record type exposing ``from_payload``
        items: Decoded JSON list from the backend (None is treated as empty)
        kind: Record kind used in log messages

    Returns:
        Records in backend order
    """
    if items is None:
        return []
    if not isinstance(items, Iterable) or isinstance(items, (str, bytes, Mapping)):
        raise ValidationError(f"Expected a list of {kind}, got {type(items).__name__}")

    records = []
    for index, item in enumerate(items):
        try:
            records.append(record_class.from_payload(item))
        except ValidationError as e:
            logger.warning("Skipping %s #%d from backend: %s", kind, index, e)
    return records
