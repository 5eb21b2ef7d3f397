"""
app/services/analysis_service.py

Service layer for LLM-backed spreadsheet analysis.

Every model call goes through one shared ResilientCaller:

    1. ResultCache            - identical inputs are answered from memory
    2. CircuitBreaker         - repeated overload fails fast for everyone
    3. retries + fallback     - next configured model, then backoff
    4. generate_validated()   - re-asks the model on malformed JSON

Questions that ask for a forecast are routed to the forecast prompt and
rendered as markdown.
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
import re
from functools import lru_cache
from typing import Any, Sequence

from pydantic import BaseModel

from app.config import get_llm_settings, get_resilience_settings
from app.domain.analysis import ChatAnswer, MultiDocumentSummary, SummaryResult
from app.domain.spreadsheet import DocumentRecord
from llm_synthesis.adapter import BaseLLMAdapter, MockLLMAdapter, OpenAILLMAdapter
from llm_synthesis.cache import ResultCache, build_cache_key
from llm_synthesis.circuit_breaker import CircuitBreaker
from llm_synthesis.prompt_builder import AnalysisPromptBuilder
from llm_synthesis.resilience import FallbackTarget, ResilientCaller
from llm_synthesis.retry import generate_validated
from llm_synthesis.schema import ForecastOutput, QuestionAnswer, SpreadsheetSummary
from spreadsheet.detection import detect_data_type

logger = logging.getLogger(__name__)

FORECAST_QUESTION_PATTERN = re.compile(
    r"forecast|predict|project|next week|next month|next quarter|next year",
    re.IGNORECASE,
)


def is_forecast_question(question: str) -> bool:
    return bool(FORECAST_QUESTION_PATTERN.search(question))


def _headers_from_text(spreadsheet_data: str) -> list[str]:
    first_line = spreadsheet_data.strip().split("\n", 1)[0]
    return next(csv.reader(io.StringIO(first_line)), [])


class AnalysisService:
    """
    Summaries and question answering over ingested spreadsheet text.
    """

    def __init__(
        self,
        *,
        adapters: Sequence[BaseLLMAdapter],
        caller: ResilientCaller,
        prompt_builder: AnalysisPromptBuilder | None = None,
        format_retries: int = 2,
    ) -> None:
        if not adapters:
            raise ValueError("At least one LLM adapter is required.")
        self._adapters = list(adapters)
        self._caller = caller
        self._prompt_builder = prompt_builder or AnalysisPromptBuilder()
        self._format_retries = max(0, format_retries)

    async def summarize(
        self,
        spreadsheet_data: str,
        headers: Sequence[str] | None = None,
    ) -> SummaryResult:
        """
        Summarize one text representation.

        Raises:
            ValueError: *spreadsheet_data* is empty.
            CircuitOpenError / TransientServiceError / PermanentServiceError:
                propagated from the resilience layer.
        """

        if not spreadsheet_data or not spreadsheet_data.strip():
            raise ValueError("Spreadsheet data is required.")

        detection = detect_data_type(headers if headers is not None else _headers_from_text(spreadsheet_data))
        mode = detection.analysis_mode
        prompt = self._prompt_builder.build_summary_prompt(spreadsheet_data, analysis_mode=mode)
        cache_key = build_cache_key("summary", mode, spreadsheet_data)

        hit, cached = self._cache_lookup(cache_key)
        if hit:
            return SummaryResult(summary=cached, analysis_mode=mode, from_cache=True)

        summary = await self._run(prompt, SpreadsheetSummary, cache_key)
        logger.info(
            "Spreadsheet summary generated mode=%s insights=%s",
            mode,
            len(summary.key_insights),
        )
        return SummaryResult(summary=summary, analysis_mode=mode)

    async def summarize_documents(
        self,
        documents: Sequence[DocumentRecord],
        combined_data: str,
    ) -> MultiDocumentSummary:
        """
        Summarize every document concurrently plus the combined dataset.
        """

        if not documents:
            raise ValueError("No documents provided.")
        if not combined_data or not combined_data.strip():
            raise ValueError("Combined data is required.")

        per_document_results = await asyncio.gather(
            *(
                self.summarize(
                    self._prompt_builder.decorate_document(document.file_name, document.text_representation),
                    headers=document.table.headers or None,
                )
                for document in documents
            )
        )
        combined = await self.summarize(self._prompt_builder.decorate_combined(combined_data))

        return MultiDocumentSummary(
            combined_summary=combined.summary,
            per_document={
                document.file_name: result.summary
                for document, result in zip(documents, per_document_results)
            },
        )

    async def answer_question(self, spreadsheet_data: str, question: str) -> ChatAnswer:
        """
        Answer a question; forecast-style questions get the forecast prompt.
        """

        if not spreadsheet_data or not spreadsheet_data.strip():
            raise ValueError("Spreadsheet data is required.")
        if not question or not question.strip():
            raise ValueError("Question is required.")

        if is_forecast_question(question):
            prompt = self._prompt_builder.build_forecast_prompt(spreadsheet_data, question)
            cache_key = build_cache_key("forecast", question.strip(), spreadsheet_data)
            forecast = await self._cached_run(prompt, ForecastOutput, cache_key)
            return ChatAnswer(answer=forecast.to_markdown(), forecast=forecast)

        prompt = self._prompt_builder.build_question_prompt(spreadsheet_data, question)
        cache_key = build_cache_key("question", question.strip(), spreadsheet_data)
        result = await self._cached_run(prompt, QuestionAnswer, cache_key)
        return ChatAnswer(answer=result.answer)

    def service_status(self) -> dict[str, Any]:
        status = self._caller.breaker.get_status()
        status["models"] = [adapter.name for adapter in self._adapters]
        status["cached_results"] = len(self._caller.cache) if self._caller.cache is not None else 0
        return status

    def reset_service_status(self) -> dict[str, Any]:
        self._caller.breaker.reset()
        return self.service_status()

    # ------------------------------------------------------------------
    # Call internals
    # ------------------------------------------------------------------

    def _cache_lookup(self, cache_key: str) -> tuple[bool, Any]:
        if self._caller.cache is None:
            return False, None
        return self._caller.cache.get(cache_key)

    async def _cached_run(self, prompt: str, output_model: type[BaseModel], cache_key: str) -> Any:
        hit, cached = self._cache_lookup(cache_key)
        if hit:
            return cached
        return await self._run(prompt, output_model, cache_key)

    async def _run(self, prompt: str, output_model: type[BaseModel], cache_key: str) -> Any:
        targets = [
            FallbackTarget(
                name=adapter.name,
                operation=self._operation(adapter, prompt, output_model),
            )
            for adapter in self._adapters
        ]
        return await self._caller.call_with_fallback(targets, cache_key=cache_key)

    def _operation(self, adapter: BaseLLMAdapter, prompt: str, output_model: type[BaseModel]):
        async def _generate():
            return await generate_validated(
                adapter,
                prompt,
                output_model,
                max_retries=self._format_retries,
            )

        return _generate


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_resilient_caller() -> ResilientCaller:
    """
    Build the process-wide caller. Its breaker is the shared health signal.
    """
    settings = get_resilience_settings()
    return ResilientCaller(
        breaker=CircuitBreaker(
            failure_threshold=settings.failure_threshold,
            reset_timeout=settings.reset_timeout_seconds,
        ),
        cache=ResultCache(
            ttl_seconds=settings.cache_ttl_seconds,
            max_entries=settings.cache_max_entries,
        ),
        max_retries=settings.max_retries,
        base_delay=settings.backoff_base_seconds,
        max_delay=settings.backoff_max_seconds,
        jitter_ratio=settings.backoff_jitter_ratio,
    )


def build_llm_adapters() -> list[BaseLLMAdapter]:
    """
    One adapter per configured model, in fallback order.
    """
    settings = get_llm_settings()
    if settings.adapter == "mock":
        return [MockLLMAdapter()]
    return [
        OpenAILLMAdapter(
            model=model,
            max_tokens=settings.max_tokens,
            api_key=settings.api_key,
            base_url=settings.base_url,
        )
        for model in settings.models
    ]


@lru_cache(maxsize=1)
def get_analysis_service() -> AnalysisService:
    """
    Build and cache the analysis service with env-driven settings.
    """
    return AnalysisService(
        adapters=build_llm_adapters(),
        caller=get_resilient_caller(),
        format_retries=get_llm_settings().format_retries,
    )
