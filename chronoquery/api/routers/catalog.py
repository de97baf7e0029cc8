"""
GET /ranges, GET /catalog -- metadata endpoints for client UIs.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from chronoquery.api.dependencies import get_compiler
from chronoquery.compiler.service import QueryCompiler
from chronoquery.compiler.spec import AggregateOperator, FilterOperator, Granularity

router = APIRouter()


class CatalogResponse(BaseModel):
    ranges: list[str]
    granularities: list[str]
    filter_operators: list[str]
    aggregate_operators: list[str]
    timestamp_field: str
    count_measure: str


@router.get("/ranges")
def list_ranges(compiler: QueryCompiler = Depends(get_compiler)) -> dict:
    """Return the range preset names in display order."""
    return {"ranges": compiler.range_presets()}


@router.get("/catalog", response_model=CatalogResponse)
def full_catalog(compiler: QueryCompiler = Depends(get_compiler)) -> CatalogResponse:
    """Everything a query builder UI needs to offer valid choices."""
    return CatalogResponse(
        ranges=compiler.range_presets(),
        granularities=[g.value for g in Granularity],
        filter_operators=[op.value for op in FilterOperator],
        aggregate_operators=[op.value for op in AggregateOperator],
        timestamp_field=compiler.config.timestamp_field,
        count_measure=compiler.config.count_measure,
    )
