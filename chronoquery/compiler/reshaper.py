"""
Result Reshaper -- flattens grouped aggregation rows back into records.

For each row: rebuild one timestamp from the calendar components in ``_id``,
promote dimension values to the top level, restore dotted measure names,
then drop ``_id``.  Input rows are never mutated.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Any

from chronoquery.compiler.fields import FieldPath
from chronoquery.compiler.pipeline_builder import GROUP_KEY, PipelineDescription, calendar_keys
from chronoquery.compiler.spec import Granularity


def rebuild_timestamp(group_key: dict[str, Any], granularity: Granularity) -> datetime | None:
    """Reconstruct the bucket start from a grouping key, in UTC.

    The month component is 1-based as extracted by the store, which is what
    ``datetime`` expects, so it is used as-is.
    """
    keys = calendar_keys(granularity)
    if not keys:
        return None
    parts = [int(group_key[k]) for k in keys]
    return datetime(*parts, tzinfo=timezone.utc)


def _as_path(value: FieldPath | str) -> FieldPath:
    return value if isinstance(value, FieldPath) else FieldPath.parse(value)


def reshape_row(
    row: dict[str, Any],
    *,
    granularity: Granularity,
    dimensions: Sequence[FieldPath],
    timestamp_field: str,
    measures: Sequence[FieldPath] = (),
) -> dict[str, Any]:
    flat = dict(row)
    group_key = flat.pop(GROUP_KEY, None) or {}

    ts = rebuild_timestamp(group_key, granularity)
    if ts is not None:
        flat[timestamp_field] = ts

    for dim in dimensions:
        flat[dim.path] = group_key.get(dim.alias)

    for measure in measures:
        if measure.alias != measure.path and measure.alias in flat:
            flat[measure.path] = flat.pop(measure.alias)

    return flat


def reshape(
    rows: Iterable[dict[str, Any]],
    *,
    granularity: Granularity,
    dimensions: Sequence[FieldPath | str],
    timestamp_field: str,
    measures: Sequence[FieldPath | str] = (),
) -> list[dict[str, Any]]:
    """Order-preserving, single-pass map of grouped rows to flat rows."""
    dims = [_as_path(d) for d in dimensions]
    meas = [_as_path(m) for m in measures]
    return [
        reshape_row(
            row,
            granularity=granularity,
            dimensions=dims,
            timestamp_field=timestamp_field,
            measures=meas,
        )
        for row in rows
    ]


def reshape_pipeline_output(
    pipeline: PipelineDescription,
    rows: Iterable[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Reshape rows using the context recorded when *pipeline* was built."""
    return reshape(
        rows,
        granularity=pipeline.granularity,
        dimensions=pipeline.dimensions,
        timestamp_field=pipeline.timestamp_field,
        measures=pipeline.measures,
    )
