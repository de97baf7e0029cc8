"""
Insert Normalizer -- makes sure a document carries a usable event time.
"""
from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from dateutil import parser

from chronoquery.compiler.ranges import ensure_utc, format_utc, utc_now
from chronoquery.core.errors import TimestampParseError


def parse_timestamp(field: str, value: str) -> datetime:
    try:
        return ensure_utc(parser.isoparse(value.strip()))
    except (ValueError, OverflowError) as exc:
        raise TimestampParseError(field, value) from exc


def normalize(
    doc: dict[str, Any],
    timestamp_field: str,
    *,
    dates_as_strings: bool = False,
    clock: Callable[[], datetime] = utc_now,
) -> dict[str, Any]:
    """Return a copy of *doc* whose timestamp field is set and well-formed.

    Missing, ``None`` and empty-string timestamps become the current instant.
    Strings are parsed as ISO-8601; naive values are taken as UTC.

    Raises
    ------
    TimestampParseError
        If the value is malformed text or not a date-like type at all.
    """
    value = doc.get(timestamp_field)

    if value is None or value == "":
        ts = clock()
    elif isinstance(value, datetime):
        ts = ensure_utc(value)
    elif isinstance(value, str):
        ts = parse_timestamp(timestamp_field, value)
    else:
        raise TimestampParseError(timestamp_field, value)

    normalized = dict(doc)
    if dates_as_strings:
        normalized[timestamp_field] = format_utc(ts)
    else:
        normalized[timestamp_field] = ts
    return normalized
