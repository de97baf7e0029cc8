"""
Pipeline Builder -- turns a QuerySpec into a staged aggregation plan.

The plan is a tuple of declarative stages (match, project, group, sort,
limit) made of plain dicts.  Field references and operator keys come from
``chronoquery.compiler.fields`` only; nothing user-supplied is spliced
into a key or ``$``-reference unchecked.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from chronoquery.compiler.fields import FieldPath, operator_key
from chronoquery.compiler.ranges import RangePresetResolver, format_utc, resolve_time_range
from chronoquery.compiler.spec import Granularity, QuerySpec
from chronoquery.core.config import CompilerConfig
from chronoquery.core.errors import InvalidFieldName
from chronoquery.core.logging import get_logger

logger = get_logger(__name__)

GROUP_KEY = "_id"

# (grouping-key component, date extraction operator), coarsest first
_CALENDAR_PARTS: list[tuple[str, str]] = [
    ("year", "year"),
    ("month", "month"),
    ("day", "dayOfMonth"),
    ("hour", "hour"),
    ("minute", "minute"),
    ("second", "second"),
]

_PART_COUNT: dict[Granularity, int] = {
    Granularity.ALL: 0,
    Granularity.DAY: 3,
    Granularity.HOUR: 4,
    Granularity.MINUTE: 5,
    Granularity.SECOND: 6,
}


def calendar_keys(granularity: Granularity) -> list[str]:
    """Grouping-key components used to bin at *granularity*."""
    return [key for key, _ in _CALENDAR_PARTS[: _PART_COUNT[granularity]]]


# ── Plan types ───────────────────────────────────────────

@dataclass(frozen=True)
class Stage:
    name: str  # match | project | group | sort | limit
    body: Any

    def to_mongo(self) -> dict[str, Any]:
        return {operator_key(self.name): self.body}


@dataclass(frozen=True)
class PipelineDescription:
    """Ordered stages plus the context needed to reshape their output."""

    stages: tuple[Stage, ...]
    granularity: Granularity
    timestamp_field: str
    dimensions: tuple[FieldPath, ...] = ()
    measures: tuple[FieldPath, ...] = ()
    count_measure: str = "count"

    def stage(self, name: str) -> Stage | None:
        for s in self.stages:
            if s.name == name:
                return s
        return None

    @property
    def stage_names(self) -> list[str]:
        return [s.name for s in self.stages]

    def to_mongo(self) -> list[dict[str, Any]]:
        return [s.to_mongo() for s in self.stages]


# ── Builder ──────────────────────────────────────────────

def build_pipeline(
    spec: QuerySpec,
    config: CompilerConfig | None = None,
    resolver: RangePresetResolver | None = None,
) -> PipelineDescription:
    """Build the match/project/group/sort/limit plan for *spec*.

    Raises
    ------
    InvalidFieldName
        If a dimension, measure or timestamp field is not a safe field path,
        or two fields would land on the same grouping/output key.
    UnknownRangePreset
        If ``spec.range`` names a preset that does not exist.
    """
    if config is None:
        config = CompilerConfig.from_settings()
    if resolver is None:
        resolver = RangePresetResolver()

    ts = FieldPath.parse(spec.timestamp_field or config.timestamp_field)
    count_key = FieldPath.parse(config.count_measure).alias
    time_series = spec.granularity is not Granularity.ALL
    date_type = "string" if config.dates_as_strings else "date"

    dimensions = [FieldPath.parse(d.field) for d in spec.dimensions]
    measures = [
        (m, None if m.field == config.count_measure else FieldPath.parse(m.field))
        for m in spec.measures
    ]

    # Dimensions are promoted into the flat row next to the measures and the
    # rebuilt timestamp, so none of them may share an output key.
    measure_keys = {count_key if path is None else path.alias for _, path in measures}
    for path in dimensions:
        if path.alias == GROUP_KEY:
            raise InvalidFieldName(path.path, f"'{GROUP_KEY}' is reserved for the grouping key")
        if path.alias in measure_keys:
            raise InvalidFieldName(path.path, "is also declared as a measure")
        if time_series and path.path == ts.path:
            raise InvalidFieldName(path.path, "is the timestamp field, which is already binned")

    # ── MATCH ────────────────────────────────────────
    match: dict[str, Any] = {}
    bounds = resolve_time_range(spec.range, resolver)
    if bounds is not None:
        start, end = bounds
        if config.dates_as_strings:
            start, end = format_utc(start), format_utc(end)
        match[ts.path] = {"$gte": start, "$lte": end, "$type": date_type}
    else:
        # Every query implicitly requires a usable timestamp
        match[ts.path] = {"$exists": True, "$type": date_type}

    for dim, path in zip(spec.dimensions, dimensions):
        if dim.op is None:
            continue
        match.setdefault(path.path, {})[operator_key(dim.op)] = dim.value

    # ── PROJECT ──────────────────────────────────────
    project: dict[str, Any] = {GROUP_KEY: 0}
    if time_series:
        project[ts.path] = 1
    for path in dimensions:
        project[path.path] = 1
    for _, path in measures:
        if path is not None:
            project[path.path] = 1

    # ── GROUP ────────────────────────────────────────
    group_key: dict[str, Any] = {}
    if time_series:
        ts_expr: Any = {"$toDate": ts.ref} if config.dates_as_strings else ts.ref
        for key, extractor in _CALENDAR_PARTS[: _PART_COUNT[spec.granularity]]:
            group_key[key] = {operator_key(extractor): ts_expr}

    for path in dimensions:
        if path.alias in group_key and group_key[path.alias] != path.ref:
            raise InvalidFieldName(
                path.path, f"collides with grouping key '{path.alias}'"
            )
        group_key[path.alias] = path.ref

    group: dict[str, Any] = {GROUP_KEY: group_key}
    for measure, path in measures:
        out_key = count_key if path is None else path.alias
        if out_key == GROUP_KEY:
            raise InvalidFieldName(measure.field, f"'{GROUP_KEY}' is reserved for the grouping key")
        if out_key in group:
            raise InvalidFieldName(measure.field, "measure is declared more than once")
        if path is None:
            group[out_key] = {"$sum": 1}
        else:
            group[out_key] = {operator_key(measure.op): path.ref}

    # ── SORT ─────────────────────────────────────────
    sort: dict[str, int] = {}
    if time_series:
        # Binned series are always chronological; per-measure sort is ignored
        sort[GROUP_KEY] = 1
    else:
        for measure, path in measures:
            if measure.sort is None:
                continue
            key = count_key if path is None else path.alias
            sort.setdefault(key, measure.sort.sign)

    # ── Assemble ─────────────────────────────────────
    stages = [
        Stage("match", match),
        Stage("project", project),
        Stage("group", group),
    ]
    if sort:
        stages.append(Stage("sort", sort))

    # LIMIT (no implicit default on the aggregation path)
    if spec.limit is not None and spec.limit > 0:
        stages.append(Stage("limit", int(spec.limit)))

    pipeline = PipelineDescription(
        stages=tuple(stages),
        granularity=spec.granularity,
        timestamp_field=ts.path,
        dimensions=tuple(dimensions),
        measures=tuple(path for _, path in measures if path is not None),
        count_measure=count_key,
    )
    logger.debug("Built pipeline for namespace=%s: %s", spec.namespace, pipeline.to_mongo())
    return pipeline
