"""
Shared fixtures -- an in-memory DocumentStore and a frozen clock.
"""
from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any

import pytest

from chronoquery.compiler.ranges import RangePresetResolver
from chronoquery.compiler.service import QueryCompiler
from chronoquery.core.config import CompilerConfig
from chronoquery.store.base import FindOptions

NOW = datetime(2024, 3, 10, 14, 37, 12, 345000, tzinfo=timezone.utc)


class FakeStore:
    """Records every call.  ``find`` evaluates simple range filters in memory;
    ``aggregate`` returns the canned grouped rows it was given."""

    def __init__(self, grouped_rows: list[dict[str, Any]] | None = None, error: Exception | None = None):
        self.grouped_rows = grouped_rows or []
        self.error = error
        self.documents: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, str, Any]] = []

    async def insert_one(self, namespace: str, document: dict[str, Any]) -> Any:
        self.calls.append(("insert_one", namespace, document))
        if self.error:
            raise self.error
        docs = self.documents.setdefault(namespace, [])
        stored = dict(document, _id=f"{namespace}-{len(docs) + 1}")
        docs.append(stored)
        return stored["_id"]

    async def aggregate(self, namespace: str, pipeline) -> list[dict[str, Any]]:
        self.calls.append(("aggregate", namespace, pipeline))
        if self.error:
            raise self.error
        return copy.deepcopy(self.grouped_rows)

    async def find(self, namespace: str, filter: dict[str, Any], options: FindOptions) -> list[dict[str, Any]]:
        self.calls.append(("find", namespace, (filter, options)))
        if self.error:
            raise self.error
        docs = [d for d in self.documents.get(namespace, []) if _matches(d, filter)]
        for field, direction in reversed(options.sort):
            docs.sort(key=lambda d: d[field], reverse=direction < 0)
        if options.limit:
            docs = docs[: options.limit]
        return copy.deepcopy(docs)


def _matches(doc: dict[str, Any], filter: dict[str, Any]) -> bool:
    for field, cond in filter.items():
        value = doc.get(field)
        if value is None:
            return False
        if "$gte" in cond and value < cond["$gte"]:
            return False
        if "$lte" in cond and value > cond["$lte"]:
            return False
    return True


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def resolver() -> RangePresetResolver:
    return RangePresetResolver(clock=lambda: NOW)


@pytest.fixture
def config() -> CompilerConfig:
    return CompilerConfig(allowed_namespaces=("events", "metrics"))


@pytest.fixture
def compiler(store, config, resolver) -> QueryCompiler:
    return QueryCompiler(store, config, resolver)


@pytest.fixture
def store_factory():
    """FakeStore constructor, for tests that need canned rows or a failing store."""
    return FakeStore
