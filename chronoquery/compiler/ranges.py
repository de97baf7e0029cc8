"""
Range presets -- named relative windows resolved to absolute bounds at call time.
"""
from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from types import MappingProxyType

from chronoquery.core.errors import UnknownRangePreset

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# None marks the open-ended "All Time" preset (start = epoch).
RANGE_PRESETS: Mapping[str, timedelta | None] = MappingProxyType({
    "1 Minute": timedelta(minutes=1),
    "1 Hour":   timedelta(hours=1),
    "12 Hours": timedelta(hours=12),
    "24 Hours": timedelta(hours=24),
    "3 Days":   timedelta(days=3),
    "7 Days":   timedelta(days=7),
    "14 Days":  timedelta(days=14),
    "30 Days":  timedelta(days=30),
    "90 Days":  timedelta(days=90),
    "180 Days": timedelta(days=180),
    "1 Year":   timedelta(days=365),
    "All Time": None,
})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class RangePresetResolver:
    """Resolves preset keys against an injected, read-only offset table.

    Parameters
    ----------
    presets : Mapping
        Preset key -> offset back from "now" (``None`` = since epoch).
    clock : callable
        Returns the current UTC instant; injectable for tests.
    """

    def __init__(
        self,
        presets: Mapping[str, timedelta | None] = RANGE_PRESETS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._presets = MappingProxyType(dict(presets))
        self._clock = clock

    def resolve(self, key: str) -> tuple[datetime, datetime]:
        if key not in self._presets:
            raise UnknownRangePreset(key, self.list_preset_names())
        end = self._clock()
        offset = self._presets[key]
        start = EPOCH if offset is None else end - offset
        return (start, end)

    @property
    def clock(self) -> Callable[[], datetime]:
        return self._clock

    def list_preset_names(self) -> list[str]:
        return list(self._presets.keys())


def resolve_time_range(
    time_range: str | tuple[datetime, datetime] | None,
    resolver: RangePresetResolver,
) -> tuple[datetime, datetime] | None:
    """Turn a preset key or explicit pair into UTC (start, end), or None."""
    if time_range is None:
        return None
    if isinstance(time_range, str):
        return resolver.resolve(time_range)
    start, end = time_range
    return (ensure_utc(start), ensure_utc(end))


def format_utc(dt: datetime) -> str:
    """ISO-8601 UTC with milliseconds and a trailing Z, sortable as text."""
    return ensure_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")
