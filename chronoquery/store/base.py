"""
Store-capability interface the compiler depends on.

Any object with these three coroutines can back a QueryCompiler; the
compiler never sees a driver type.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from chronoquery.compiler.pipeline_builder import PipelineDescription


@dataclass(frozen=True)
class FindOptions:
    sort: list[tuple[str, int]] = field(default_factory=list)
    limit: int | None = None  # None = unbounded


class DocumentStore(Protocol):
    async def insert_one(self, namespace: str, document: dict[str, Any]) -> Any:
        """Insert one document and return its id."""
        ...

    async def aggregate(self, namespace: str, pipeline: PipelineDescription) -> list[dict[str, Any]]:
        """Run *pipeline* and return every grouped row."""
        ...

    async def find(self, namespace: str, filter: dict[str, Any], options: FindOptions) -> list[dict[str, Any]]:
        """Return raw documents matching *filter*, sorted and limited per *options*."""
        ...
