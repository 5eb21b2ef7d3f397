from __future__ import annotations

import logging
import os

from fastapi import FastAPI

_ALLOWED_ADAPTERS = ("openai", "mock")

_NUMERIC_ENV_VARS = (
    "SPREADSHEET_MAX_ROWS",
    "SPREADSHEET_MAX_FILE_SIZE_BYTES",
    "SPREADSHEET_SAMPLE_ROWS_FOR_TEXT",
    "SPREADSHEET_MAX_FILES_PER_BATCH",
    "LLM_MAX_RETRIES",
    "LLM_BACKOFF_BASE_SECONDS",
    "LLM_BACKOFF_MAX_SECONDS",
    "LLM_BACKOFF_JITTER_RATIO",
    "LLM_CIRCUIT_FAILURE_THRESHOLD",
    "LLM_CIRCUIT_RESET_TIMEOUT_SECONDS",
    "LLM_CACHE_TTL_SECONDS",
    "LLM_CACHE_MAX_ENTRIES",
    "LLM_MAX_TOKENS",
    "LLM_FORMAT_RETRIES",
)


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - LLM_ADAPTER must be one of 'openai' or 'mock'.
    - LLM API key check is skipped only when LLM_ADAPTER=mock.
    - Numeric limits, when set, must parse as numbers.
    """

    from app.config import load_env_files

    load_env_files()

    errors: list[str] = []

    # --- LLM adapter ----------------------------------------------------
    adapter = os.getenv("LLM_ADAPTER", "openai").strip().lower()
    if adapter not in _ALLOWED_ADAPTERS:
        errors.append(
            f"LLM_ADAPTER='{adapter}' is not valid. Allowed values: {list(_ALLOWED_ADAPTERS)}."
        )

    # --- LLM API key ----------------------------------------------------
    if adapter != "mock":
        llm_api_key = os.getenv("LLM_API_KEY", "").strip()
        openai_api_key = os.getenv("OPENAI_API_KEY", "").strip()
        if not llm_api_key and not openai_api_key:
            errors.append(
                "LLM API key is not set. Provide LLM_API_KEY or OPENAI_API_KEY. "
                "Empty strings are not permitted."
            )

    # --- Numeric limits -------------------------------------------------
    for name in _NUMERIC_ENV_VARS:
        raw_value = os.getenv(name)
        if raw_value is None or not raw_value.strip():
            continue
        try:
            float(raw_value)
        except ValueError:
            errors.append(f"{name}='{raw_value}' is not a number.")

    if errors:
        raise RuntimeError(
            "Startup validation failed: missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Gridly API",
        version="1.0.0",
    )

    from app.api.routers import analysis_router, spreadsheet_ingestion_router

    application.include_router(spreadsheet_ingestion_router)
    application.include_router(analysis_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    logging.getLogger(__name__).info("Gridly API initialized")
    return application


app = create_app()
