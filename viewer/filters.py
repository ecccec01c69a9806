"""
Location query filters and their input coercion.

``limit`` bounds how many locations a load returns and ``hours`` bounds the
recency window of machine-scoped loads. Raw operator input is coerced into
range before it ever reaches a request.
"""
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from django.conf import settings

from .exceptions import ValidationError

logger = logging.getLogger(__name__)

LIMIT_RANGE: tuple[int, int] = (10, 1000)
HOURS_RANGE: tuple[int, int] = (1, 168)

DEFAULT_LIMIT = 100
DEFAULT_HOURS = 24

_RANGES: dict[str, tuple[int, int]] = {
    'limit': LIMIT_RANGE,
    'hours': HOURS_RANGE,
}


@dataclass(frozen=True)
class Filters:
    """Query bounds shared by every location load."""

    limit: int = DEFAULT_LIMIT
    hours: int = DEFAULT_HOURS

    @classmethod
    def from_settings(cls) -> 'Filters':
        return cls(
            limit=clamp('limit', getattr(settings, 'VIEWER_DEFAULT_LIMIT', DEFAULT_LIMIT)),
            hours=clamp('hours', getattr(settings, 'VIEWER_DEFAULT_HOURS', DEFAULT_HOURS)),
        )

    def merge(self, changes: Mapping[str, Any]) -> 'Filters':
        """Shallow-merge raw changes, coercing each value into range."""
        return replace(self, **coerce_filters(changes, self))


def parse_filter_value(name: str, raw: Any) -> int:
    """
    Parse one raw filter value into an integer.

    Accepts ints, and strings or floats holding a finite number (fractions
    are truncated toward zero).

    Raises:
        ValidationError: If the value is not numeric
    """
    if isinstance(raw, bool):
        raise ValidationError(f"Expected a number for {name}, got {raw!r}", field=name)
    if isinstance(raw, int):
        return raw
    try:
        value = float(str(raw).strip())
    except ValueError:
        raise ValidationError(f"Expected a number for {name}, got {raw!r}", field=name) from None
    if not math.isfinite(value):
        raise ValidationError(f"Expected a finite number for {name}, got {raw!r}", field=name)
    return int(value)


def clamp(name: str, value: int) -> int:
    low, high = _RANGES[name]
    return max(low, min(high, value))


def coerce_filters(changes: Mapping[str, Any], current: Filters | None = None) -> dict[str, int]:
    """
    Coerce a partial filter change into range.

    Non-numeric input falls back to the current value when there is one,
    otherwise to the default. Unknown keys are rejected.

    Args:
        changes: Raw values keyed by filter name
        current: Filters in effect before the change

    Returns:
        Validated integer values for the keys present in ``changes``

    Raises:
        ValidationError: If ``changes`` names an unknown filter
    """
    coerced: dict[str, int] = {}
    for name, raw in changes.items():
        if name not in _RANGES:
            raise ValidationError(f"Unknown filter '{name}'", field=name)
        try:
            coerced[name] = clamp(name, parse_filter_value(name, raw))
        except ValidationError as e:
            fallback = getattr(current, name) if current is not None else getattr(Filters(), name)
            logger.info("Ignoring filter input: %s; keeping %s=%d", e, name, fallback)
            coerced[name] = fallback
    return coerced
