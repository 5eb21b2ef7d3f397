"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    project_root = Path(__file__).resolve().parents[1]
    for filename in (".env", ".env.local"):
        env_path = project_root / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    """
    Read a comma-separated list, dropping blank items.
    """

    raw_value = _get_optional_str_env(name)
    if raw_value is None:
        return default
    items = tuple(item.strip() for item in raw_value.split(",") if item.strip())
    return items or default


@dataclass(frozen=True)
class SpreadsheetIngestionSettings:
    """
    Runtime limits for spreadsheet ingestion.
    """

    max_rows: int = 5000
    max_file_size_bytes: int = 10 * 1024 * 1024
    sample_rows_for_text: int = 200
    max_files_per_batch: int = 10


@dataclass(frozen=True)
class ResilienceSettings:
    """
    Retry, circuit breaker and result cache settings for outbound LLM calls.
    """

    max_retries: int = 4
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 30.0
    backoff_jitter_ratio: float = 0.1
    failure_threshold: int = 5
    reset_timeout_seconds: float = 15.0
    cache_ttl_seconds: float = 600.0
    cache_max_entries: int = 100


@dataclass(frozen=True)
class LLMSettings:
    """
    LLM adapter selection and model fallback order.
    """

    adapter: str = "openai"
    models: tuple[str, ...] = ("gpt-4o-mini", "gpt-4o")
    api_key: str | None = None
    base_url: str | None = None
    max_tokens: int = 2048
    format_retries: int = 2


@lru_cache(maxsize=1)
def get_spreadsheet_ingestion_settings() -> SpreadsheetIngestionSettings:
    """
    Return cached spreadsheet ingestion settings from environment variables.
    """

    return SpreadsheetIngestionSettings(
        max_rows=max(1, _get_int_env("SPREADSHEET_MAX_ROWS", 5000)),
        max_file_size_bytes=max(1, _get_int_env("SPREADSHEET_MAX_FILE_SIZE_BYTES", 10 * 1024 * 1024)),
        sample_rows_for_text=max(0, _get_int_env("SPREADSHEET_SAMPLE_ROWS_FOR_TEXT", 200)),
        max_files_per_batch=max(1, _get_int_env("SPREADSHEET_MAX_FILES_PER_BATCH", 10)),
    )


@lru_cache(maxsize=1)
def get_resilience_settings() -> ResilienceSettings:
    """
    Return cached resilience settings from environment variables.
    """

    return ResilienceSettings(
        max_retries=max(0, _get_int_env("LLM_MAX_RETRIES", 4)),
        backoff_base_seconds=max(0.0, _get_float_env("LLM_BACKOFF_BASE_SECONDS", 1.0)),
        backoff_max_seconds=max(0.0, _get_float_env("LLM_BACKOFF_MAX_SECONDS", 30.0)),
        backoff_jitter_ratio=max(0.0, _get_float_env("LLM_BACKOFF_JITTER_RATIO", 0.1)),
        failure_threshold=max(1, _get_int_env("LLM_CIRCUIT_FAILURE_THRESHOLD", 5)),
        reset_timeout_seconds=max(0.0, _get_float_env("LLM_CIRCUIT_RESET_TIMEOUT_SECONDS", 15.0)),
        cache_ttl_seconds=max(0.0, _get_float_env("LLM_CACHE_TTL_SECONDS", 600.0)),
        cache_max_entries=max(1, _get_int_env("LLM_CACHE_MAX_ENTRIES", 100)),
    )


@lru_cache(maxsize=1)
def get_llm_settings() -> LLMSettings:
    """
    Return cached LLM adapter settings from environment variables.
    """

    return LLMSettings(
        adapter=_get_str_env("LLM_ADAPTER", "openai").lower(),
        models=_get_csv_env("LLM_MODELS", ("gpt-4o-mini", "gpt-4o")),
        api_key=_get_optional_str_env("LLM_API_KEY") or _get_optional_str_env("OPENAI_API_KEY"),
        base_url=_get_optional_str_env("LLM_BASE_URL"),
        max_tokens=max(1, _get_int_env("LLM_MAX_TOKENS", 2048)),
        format_retries=max(0, _get_int_env("LLM_FORMAT_RETRIES", 2)),
    )
