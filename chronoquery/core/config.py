"""
Centralised settings loaded from environment / .env file, plus the frozen
compiler configuration derived from them.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load .env from project root (two levels up from this file)
_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseSettings):
    # ── MongoDB ──────────────────────────────────────────
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "analytics"

    # ── Compiler ─────────────────────────────────────────
    allowed_namespaces: list[str] = []  # empty = every namespace permitted
    timestamp_field: str = "ts"
    count_measure: str = "count"
    dates_as_strings: bool = False

    # ── App ──────────────────────────────────────────────
    route_prefix: str = "/api/analytics"
    api_port: int = 8000
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()


@dataclass(frozen=True)
class CompilerConfig:
    """Options bound once when a QueryCompiler is constructed."""

    allowed_namespaces: tuple[str, ...] = ()
    timestamp_field: str = "ts"
    count_measure: str = "count"
    dates_as_strings: bool = False

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> CompilerConfig:
        if settings is None:
            settings = get_settings()
        return cls(
            allowed_namespaces=tuple(settings.allowed_namespaces),
            timestamp_field=settings.timestamp_field,
            count_measure=settings.count_measure,
            dates_as_strings=settings.dates_as_strings,
        )
