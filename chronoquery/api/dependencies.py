"""
FastAPI dependencies -- the process-wide QueryCompiler.
"""
from __future__ import annotations

from functools import lru_cache

from chronoquery.compiler.service import QueryCompiler
from chronoquery.core.config import CompilerConfig
from chronoquery.store.mongo import get_store


@lru_cache
def get_compiler() -> QueryCompiler:
    return QueryCompiler(get_store(), CompilerConfig.from_settings())
