"""
QuerySpec -- the typed request the pipeline builder compiles, plus the
transport-agnostic request bodies that produce it.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Granularity(str, Enum):
    ALL = "all"
    DAY = "day"
    HOUR = "hour"
    MINUTE = "minute"
    SECOND = "second"


class FilterOperator(str, Enum):
    EQ = "eq"
    NE = "ne"
    IN = "in"
    NIN = "nin"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    REGEX = "regex"
    EXISTS = "exists"


class AggregateOperator(str, Enum):
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"
    FIRST = "first"
    LAST = "last"


class SortDirection(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"

    @property
    def sign(self) -> int:
        return 1 if self is SortDirection.ASCENDING else -1


def _strip_dollar(value: Any) -> Any:
    # "$sum" and "sum" are both accepted
    if isinstance(value, str):
        return value.strip().lstrip("$").lower()
    return value


# A preset key, or an explicit (start, end) pair.
TimeRange = str | tuple[datetime, datetime]


class Dimension(BaseModel):
    """A field to group by, optionally filtered in the match stage."""

    model_config = ConfigDict(frozen=True)

    field: str
    op: FilterOperator | None = None
    value: Any = None

    @field_validator("op", mode="before")
    @classmethod
    def _normalise_op(cls, v: Any) -> Any:
        return _strip_dollar(v)

    @model_validator(mode="after")
    def _check_value_shape(self) -> Dimension:
        if self.op in (FilterOperator.IN, FilterOperator.NIN) and not isinstance(self.value, (list, tuple)):
            raise ValueError(f"'{self.op.value}' filter on '{self.field}' needs a list value")
        if self.op is FilterOperator.REGEX and not isinstance(self.value, str):
            raise ValueError(f"'regex' filter on '{self.field}' needs a string pattern")
        if self.op is FilterOperator.EXISTS and not isinstance(self.value, bool):
            raise ValueError(f"'exists' filter on '{self.field}' needs a boolean value")
        return self


class Measure(BaseModel):
    """A field (or the synthetic count) aggregated per group."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    field: str
    op: AggregateOperator = Field(AggregateOperator.SUM, alias="operator")
    sort: SortDirection | None = None

    @field_validator("op", mode="before")
    @classmethod
    def _normalise_op(cls, v: Any) -> Any:
        if v is None:
            return AggregateOperator.SUM
        return _strip_dollar(v)

    @field_validator("sort", mode="before")
    @classmethod
    def _normalise_sort(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().lower() in ("", "none"):
            return None
        return v


def _coerce_dimensions(v: Any) -> Any:
    if isinstance(v, list):
        return [{"field": d} if isinstance(d, str) else d for d in v]
    return v


class QuerySpec(BaseModel):
    """Declarative aggregation request against one namespace."""

    model_config = ConfigDict(frozen=True)

    namespace: str = Field(..., min_length=1)
    range: TimeRange | None = Field(None, description="Preset key (e.g. '7 Days') or [start, end]")
    dimensions: list[Dimension] = Field(default_factory=list)
    measures: list[Measure] = Field(default_factory=list)
    granularity: Granularity = Granularity.ALL
    limit: int | None = Field(None, description="Maximum grouped rows; ignored unless positive")
    timestamp_field: str | None = Field(None, description="Overrides the configured timestamp field")
    debug: bool = False

    @field_validator("dimensions", mode="before")
    @classmethod
    def _dimension_shorthand(cls, v: Any) -> Any:
        return _coerce_dimensions(v)


SCAN_DEFAULT_LIMIT = 100


class ScanSpec(BaseModel):
    """Bulk read of raw documents ordered by timestamp, bypassing aggregation."""

    model_config = ConfigDict(frozen=True)

    namespace: str = Field(..., min_length=1)
    range: TimeRange | None = None
    limit: int | None = Field(SCAN_DEFAULT_LIMIT, ge=1, description="None = unbounded")
    order: SortDirection = SortDirection.ASCENDING
    timestamp_field: str | None = None
    debug: bool = False


# ── Request bodies (camelCase, as sent by clients) ───────


def _explicit_range(start: datetime | None, end: datetime | None) -> tuple[datetime, datetime] | None:
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise ValueError("startTime and endTime must be supplied together")
    return (start, end)


class QueryRequest(BaseModel):
    startTime: datetime | None = None
    endTime: datetime | None = None
    range: str | None = None
    dimensions: list[Dimension] = Field(default_factory=list)
    measures: list[Measure] = Field(default_factory=list)
    timestampField: str | None = None
    granularity: Granularity = Granularity.ALL
    limit: int | None = None
    debug: bool = False

    @field_validator("dimensions", mode="before")
    @classmethod
    def _dimension_shorthand(cls, v: Any) -> Any:
        return _coerce_dimensions(v)

    @model_validator(mode="after")
    def _check_bounds(self) -> QueryRequest:
        _explicit_range(self.startTime, self.endTime)
        return self

    def to_spec(self, namespace: str) -> QuerySpec:
        return QuerySpec(
            namespace=namespace,
            range=self.range or _explicit_range(self.startTime, self.endTime),
            dimensions=self.dimensions,
            measures=self.measures,
            granularity=self.granularity,
            limit=self.limit,
            timestamp_field=self.timestampField,
            debug=self.debug,
        )


class ScanRequest(BaseModel):
    startTime: datetime | None = None
    endTime: datetime | None = None
    range: str | None = None
    limit: int | None = Field(SCAN_DEFAULT_LIMIT, ge=1)
    order: SortDirection = SortDirection.ASCENDING
    timestampField: str | None = None
    debug: bool = False

    @model_validator(mode="after")
    def _check_bounds(self) -> ScanRequest:
        _explicit_range(self.startTime, self.endTime)
        return self

    def to_spec(self, namespace: str) -> ScanSpec:
        return ScanSpec(
            namespace=namespace,
            range=self.range or _explicit_range(self.startTime, self.endTime),
            limit=self.limit,
            order=self.order,
            timestamp_field=self.timestampField,
            debug=self.debug,
        )
