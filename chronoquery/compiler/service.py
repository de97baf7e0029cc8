"""
Query Compiler -- orchestrates namespace check -> range -> build -> store -> reshape.

Also owns the insert path (normalize -> insert_one) and the bulk scan path
(range filter -> find).  Each call is an independent request/response cycle
that ends in one of three ways:

  - success        documents (or an inserted id) returned
  - rejected       validation failure; the store is never called
  - store failure  StoreError raised once, never retried
"""
from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from chronoquery.compiler.fields import FieldPath
from chronoquery.compiler.normalizer import normalize
from chronoquery.compiler.pipeline_builder import PipelineDescription, build_pipeline
from chronoquery.compiler.ranges import RangePresetResolver, format_utc, resolve_time_range
from chronoquery.compiler.reshaper import reshape_pipeline_output
from chronoquery.compiler.spec import QuerySpec, ScanSpec
from chronoquery.core.config import CompilerConfig
from chronoquery.core.errors import StoreError
from chronoquery.core.logging import get_logger
from chronoquery.governance.namespaces import check_namespace
from chronoquery.store.base import DocumentStore, FindOptions

logger = get_logger(__name__)

# Fire-and-forget inserts are held here until they finish.
_background_tasks: set[asyncio.Task] = set()


@asynccontextmanager
async def _store_call(operation: str, namespace: str, detail: Any, debug: bool) -> AsyncIterator[None]:
    """Surface any store failure as StoreError, logging it when *debug* is set."""
    try:
        yield
    except Exception as exc:
        if debug:
            logger.error("%s failed  namespace=%s  detail=%s  error=%s", operation, namespace, detail, exc)
        if isinstance(exc, StoreError):
            raise
        raise StoreError(f"{operation} on '{namespace}' failed: {exc}") from exc


class QueryCompiler:
    """Compiles analytics requests and runs them against a DocumentStore.

    Parameters
    ----------
    store : DocumentStore
        Anything providing ``insert_one``, ``aggregate`` and ``find``.
    config : CompilerConfig, optional
        Bound once; defaults to the process Settings.
    resolver : RangePresetResolver, optional
        Preset table + clock; defaults to the built-in presets.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: CompilerConfig | None = None,
        resolver: RangePresetResolver | None = None,
    ):
        self._store = store
        self._config = config if config is not None else CompilerConfig.from_settings()
        self._resolver = resolver if resolver is not None else RangePresetResolver()

    @property
    def config(self) -> CompilerConfig:
        return self._config

    def check_namespace(self, namespace: str) -> None:
        check_namespace(namespace, self._config.allowed_namespaces)

    def range_presets(self) -> list[str]:
        return self._resolver.list_preset_names()

    # ── Query path ──────────────────────────────────────

    def compile(self, spec: QuerySpec) -> PipelineDescription:
        """Dry run: validate and build the pipeline without touching the store."""
        self.check_namespace(spec.namespace)
        return build_pipeline(spec, self._config, self._resolver)

    async def query(self, spec: QuerySpec) -> list[dict[str, Any]]:
        t0 = time.perf_counter()
        pipeline = self.compile(spec)
        if spec.debug:
            logger.info("query namespace=%s pipeline=%s", spec.namespace, pipeline.to_mongo())

        async with _store_call("aggregate", spec.namespace, pipeline.to_mongo(), spec.debug):
            rows = await self._store.aggregate(spec.namespace, pipeline)

        docs = reshape_pipeline_output(pipeline, rows)
        latency = int((time.perf_counter() - t0) * 1000)
        logger.info("query namespace=%s granularity=%s rows=%d latency_ms=%d",
                    spec.namespace, spec.granularity.value, len(docs), latency)
        return docs

    # ── Insert path ─────────────────────────────────────

    def _prepare_insert(self, namespace: str, doc: dict[str, Any]) -> dict[str, Any]:
        self.check_namespace(namespace)
        return normalize(
            doc,
            self._config.timestamp_field,
            dates_as_strings=self._config.dates_as_strings,
            clock=self._resolver.clock,
        )

    async def insert(self, namespace: str, doc: dict[str, Any], *, debug: bool = False) -> Any:
        """Normalize the timestamp of *doc* and store it; returns the inserted id."""
        normalized = self._prepare_insert(namespace, doc)
        async with _store_call("insert_one", namespace, normalized, debug):
            inserted_id = await self._store.insert_one(namespace, normalized)
        logger.debug("insert namespace=%s id=%s", namespace, inserted_id)
        return inserted_id

    def submit_insert(self, namespace: str, doc: dict[str, Any]) -> asyncio.Task:
        """Schedule an insert whose result the caller does not wait for.

        Validation (namespace, timestamp) happens before scheduling and raises
        immediately.  Store failures are logged when the task finishes.
        """
        normalized = self._prepare_insert(namespace, doc)
        task = asyncio.get_running_loop().create_task(self._store.insert_one(namespace, normalized))
        _background_tasks.add(task)

        def _done(done: asyncio.Task) -> None:
            _background_tasks.discard(done)
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None:
                logger.error("fire-and-forget insert failed  namespace=%s  error=%s", namespace, exc)

        task.add_done_callback(_done)
        return task

    # ── Scan path ───────────────────────────────────────

    def scan_filter(self, spec: ScanSpec) -> tuple[dict[str, Any], FindOptions]:
        """Build the find filter and options for *spec* (no store call)."""
        self.check_namespace(spec.namespace)
        ts = FieldPath.parse(spec.timestamp_field or self._config.timestamp_field)

        filter: dict[str, Any] = {}
        bounds = resolve_time_range(spec.range, self._resolver)
        if bounds is not None:
            start, end = bounds
            if self._config.dates_as_strings:
                start, end = format_utc(start), format_utc(end)
            filter[ts.path] = {"$gte": start, "$lte": end}

        options = FindOptions(sort=[(ts.path, spec.order.sign)], limit=spec.limit)
        return filter, options

    async def scan(self, spec: ScanSpec) -> list[dict[str, Any]]:
        """Raw documents in timestamp order, bypassing aggregation entirely."""
        filter, options = self.scan_filter(spec)
        if spec.debug:
            logger.info("scan namespace=%s filter=%s options=%s", spec.namespace, filter, options)

        async with _store_call("find", spec.namespace, filter, spec.debug):
            docs = await self._store.find(spec.namespace, filter, options)

        logger.info("scan namespace=%s documents=%d", spec.namespace, len(docs))
        return docs
