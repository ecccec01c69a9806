"""
Serializers for tracking backend payloads.

The backend is loose about field names (``machine_name`` or ``name``,
``count`` or ``locations_count``, ``created_at`` or ``timestamp``). These
serializers validate each record and normalize the aliases before the
viewer builds its immutable records from them.
"""
import logging
import math
from datetime import UTC, datetime
from typing import Any

from rest_framework import serializers

logger = logging.getLogger(__name__)


class TimestampField(serializers.DateTimeField):
    """
    Accept ISO 8601 strings or Unix epoch seconds.

    Unreadable values decode to None so the record is still shown,
    with its time rendered as unknown.
    """

    def to_internal_value(self, value: Any) -> datetime | None:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                return datetime.fromtimestamp(value, tz=UTC)
            except (OverflowError, OSError, ValueError):
                logger.debug("Unreadable epoch timestamp %r, treating as unknown", value)
                return None
        try:
            return super().to_internal_value(value)
        except serializers.ValidationError:
            logger.debug("Unreadable timestamp %r, treating as unknown", value)
            return None


def _optional_text(**kwargs: Any) -> serializers.CharField:
    return serializers.CharField(required=False, allow_null=True, allow_blank=True, **kwargs)


class LocationSerializer(serializers.Serializer):
    """Validates one reported device position."""

    id = serializers.JSONField(required=False, allow_null=True)
    machine_name = serializers.CharField(required=False, allow_blank=True, default='')
    user_name = _optional_text()
    latitude = serializers.FloatField()
    longitude = serializers.FloatField()
    accuracy = serializers.FloatField(required=False, allow_null=True)
    location_source = _optional_text()
    city = _optional_text()
    country = _optional_text()
    public_ip = _optional_text()
    created_at = TimestampField(required=False, allow_null=True)
    timestamp = TimestampField(required=False, allow_null=True)

    def validate_latitude(self, value: float) -> float:
        if not math.isfinite(value):
            raise serializers.ValidationError(f"Expected a finite latitude, got {value}")
        return value

    def validate_longitude(self, value: float) -> float:
        if not math.isfinite(value):
            raise serializers.ValidationError(f"Expected a finite longitude, got {value}")
        return value


class MachineSerializer(serializers.Serializer):
    """Validates one tracked machine and folds its field aliases together."""

    machine_name = serializers.CharField(required=False, allow_blank=True)
    name = serializers.CharField(required=False, allow_blank=True)
    count = serializers.IntegerField(required=False, allow_null=True)
    locations_count = serializers.IntegerField(required=False, allow_null=True)
    last_seen = TimestampField(required=False, allow_null=True)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        name = attrs.get('machine_name') or attrs.get('name')
        if not name:
            raise serializers.ValidationError("Expected machine_name or name")
        return {
            'name': name,
            'count': attrs.get('locations_count') or attrs.get('count') or 0,
            'last_seen': attrs.get('last_seen'),
        }


class StatsSerializer(serializers.Serializer):
    """Validates the aggregate statistics snapshot."""

    total_locations = serializers.IntegerField(required=False, default=0)
    unique_machines = serializers.IntegerField(required=False, default=0)


class DatabaseFileSerializer(serializers.Serializer):
    size_mb = serializers.FloatField(required=False, allow_null=True)
    size_human = _optional_text()
    last_modified = TimestampField(required=False, allow_null=True)


class DatabaseStatisticsSerializer(serializers.Serializer):
    total_records = serializers.IntegerField(required=False, allow_null=True)


class SqliteInfoSerializer(serializers.Serializer):
    page_count = serializers.IntegerField(required=False, allow_null=True)
    page_size = serializers.IntegerField(required=False, allow_null=True)


class DatabaseInfoSerializer(serializers.Serializer):
    """Validates the read-only database diagnostic snapshot."""

    file = DatabaseFileSerializer(required=False, allow_null=True)
    statistics = DatabaseStatisticsSerializer(required=False, allow_null=True)
    sqlite = SqliteInfoSerializer(required=False, allow_null=True)


class ClearResultSerializer(serializers.Serializer):
    """Validates the acknowledgement of a delete operation."""

    message = serializers.CharField(required=False, allow_blank=True, default='')
    deleted_records = serializers.IntegerField(required=False, default=0)
