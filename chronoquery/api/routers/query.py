"""POST /query, /concentrator and /scan -- the analytics read and write endpoints."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel

from chronoquery.api.dependencies import get_compiler
from chronoquery.api.serialization import serialise_documents, serialise_value
from chronoquery.compiler.service import QueryCompiler
from chronoquery.compiler.spec import QueryRequest, ScanRequest
from chronoquery.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class ExplainResponse(BaseModel):
    namespace: str
    pipeline: list[dict[str, Any]]


class InsertResponse(BaseModel):
    inserted_id: str


class AcceptedResponse(BaseModel):
    accepted: bool


@router.post("/query/{namespace}")
async def query_endpoint(
    namespace: str,
    req: QueryRequest,
    compiler: QueryCompiler = Depends(get_compiler),
) -> list[dict[str, Any]]:
    """Aggregated query against the collected history, reshaped into flat rows."""
    docs = await compiler.query(req.to_spec(namespace))
    return serialise_documents(docs)


@router.post("/query/{namespace}/explain", response_model=ExplainResponse)
def explain_endpoint(
    namespace: str,
    req: QueryRequest,
    compiler: QueryCompiler = Depends(get_compiler),
) -> ExplainResponse:
    """Dry-run: return the aggregation pipeline without executing it."""
    pipeline = compiler.compile(req.to_spec(namespace))
    return ExplainResponse(namespace=namespace, pipeline=serialise_value(pipeline.to_mongo()))


@router.post("/concentrator/{namespace}", response_model=InsertResponse)
async def insert_endpoint(
    namespace: str,
    doc: dict[str, Any] = Body(...),
    debug: bool = False,
    compiler: QueryCompiler = Depends(get_compiler),
) -> InsertResponse:
    """Insert one analytics document; a missing timestamp is set server-side.

    With `?debug=true` a failed store write is logged with the document.
    """
    inserted_id = await compiler.insert(namespace, doc, debug=debug)
    return InsertResponse(inserted_id=str(inserted_id))


@router.post("/concentrator/{namespace}/nowait", status_code=202, response_model=AcceptedResponse)
async def insert_nowait_endpoint(
    namespace: str,
    doc: dict[str, Any] = Body(...),
    compiler: QueryCompiler = Depends(get_compiler),
) -> AcceptedResponse:
    """Fire-and-forget insert: validated now, stored in the background."""
    compiler.submit_insert(namespace, doc)
    return AcceptedResponse(accepted=True)


@router.post("/scan/{namespace}")
async def scan_endpoint(
    namespace: str,
    req: ScanRequest | None = None,
    compiler: QueryCompiler = Depends(get_compiler),
) -> list[dict[str, Any]]:
    """Raw documents in timestamp order (default limit 100)."""
    req = req or ScanRequest()
    docs = await compiler.scan(req.to_spec(namespace))
    return serialise_documents(docs)
