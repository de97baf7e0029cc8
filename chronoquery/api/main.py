"""
FastAPI application entry-point.

Run:  uvicorn chronoquery.api.main:app --reload
"""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from chronoquery.api.routers import catalog, query
from chronoquery.core.config import get_settings
from chronoquery.core.errors import (
    CompilerError,
    InvalidFieldName,
    NamespaceNotAllowed,
    StoreError,
    TimestampParseError,
    UnknownRangePreset,
)
from chronoquery.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

_ERROR_STATUS: dict[type[CompilerError], int] = {
    NamespaceNotAllowed: 400,
    UnknownRangePreset: 400,
    TimestampParseError: 400,
    InvalidFieldName: 422,
    StoreError: 500,
}

app = FastAPI(
    title="chronoquery",
    version="0.1.0",
    description="Time-bucketed analytics queries compiled to document-store aggregation pipelines",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(query.router, prefix=settings.route_prefix, tags=["Analytics"])
app.include_router(catalog.router, prefix=settings.route_prefix, tags=["Catalog"])


@app.exception_handler(CompilerError)
async def compiler_error_handler(request: Request, exc: CompilerError) -> JSONResponse:
    status = _ERROR_STATUS.get(type(exc), 500)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"error": type(exc).__name__, "detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "detail": jsonable_encoder(exc.errors(include_url=False, include_context=False)),
        },
    )


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("chronoquery.api.main:app", host="0.0.0.0", port=settings.api_port)
