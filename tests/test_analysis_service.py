from __future__ import annotations

import asyncio
import json
import random

import pytest

from app.domain.spreadsheet import DocumentRecord, ParsedTable
from app.services.analysis_service import AnalysisService, is_forecast_question
from llm_synthesis.adapter import BaseLLMAdapter, MockLLMAdapter
from llm_synthesis.cache import ResultCache
from llm_synthesis.circuit_breaker import CircuitBreaker, CircuitOpenError
from llm_synthesis.resilience import PermanentServiceError, ResilientCaller, TransientServiceError

SALES_DATA = "Month,Sales,Revenue\nJan,100,1000\nFeb,150,1600\n"


class OverloadedAdapter(BaseLLMAdapter):
    def __init__(self, name: str = "overloaded") -> None:
        self.name = name
        self.calls = 0

    async def generate(self, prompt: str) -> str:
        self.calls += 1
        raise RuntimeError("503 Service Unavailable: model overloaded")


class BrokenJSONAdapter(BaseLLMAdapter):
    name = "broken"

    async def generate(self, prompt: str) -> str:
        return "definitely not json"


class TruncatedJSONAdapter(BaseLLMAdapter):
    """Replies with JSON whose decode error lands at char 5020."""

    name = "truncated"

    def __init__(self) -> None:
        self.calls = 0

    async def generate(self, prompt: str) -> str:
        self.calls += 1
        return '{"answer": "' + "x" * 5006 + '" "tail": 1}'


def _service(clock, recording_sleep, *adapters: BaseLLMAdapter, max_retries: int = 4) -> AnalysisService:
    caller = ResilientCaller(
        breaker=CircuitBreaker(failure_threshold=5, reset_timeout=15.0, clock=clock),
        cache=ResultCache(ttl_seconds=600, max_entries=100, clock=clock),
        max_retries=max_retries,
        sleep=recording_sleep,
        rng=random.Random(1),
    )
    return AnalysisService(adapters=list(adapters) or [MockLLMAdapter()], caller=caller, format_retries=1)


@pytest.mark.parametrize(
    ("question", "expected"),
    [
        ("Forecast sales for next month", True),
        ("Can you predict churn?", True),
        ("What happens next quarter?", True),
        ("Which region sold most?", False),
        ("What is the average cost?", False),
    ],
)
def test_forecast_question_routing(question, expected) -> None:
    assert is_forecast_question(question) is expected


def test_summarize_detects_mode_and_caches(clock, recording_sleep) -> None:
    adapter = MockLLMAdapter()
    service = _service(clock, recording_sleep, adapter)

    first = asyncio.run(service.summarize(SALES_DATA))
    second = asyncio.run(service.summarize(SALES_DATA))

    assert first.analysis_mode == "revenue_analysis"
    assert not first.from_cache
    assert second.from_cache
    assert second.summary == first.summary
    assert adapter.calls == 1


def test_summarize_uses_explicit_headers(clock, recording_sleep) -> None:
    service = _service(clock, recording_sleep)

    result = asyncio.run(service.summarize("a,b\n1,2", headers=["Task", "Status", "Owner"]))

    assert result.analysis_mode == "project_tracking"


def test_summarize_rejects_empty_data(clock, recording_sleep) -> None:
    service = _service(clock, recording_sleep)

    with pytest.raises(ValueError):
        asyncio.run(service.summarize("   "))


def test_summarize_documents_returns_per_document_summaries(clock, recording_sleep) -> None:
    service = _service(clock, recording_sleep)
    documents = [
        DocumentRecord(
            id="1",
            file_name="north.csv",
            table=ParsedTable(headers=("Region", "Sales")),
            text_representation="Region,Sales\nNorth,100\n",
        ),
        DocumentRecord(
            id="2",
            file_name="south.csv",
            table=ParsedTable(headers=("Region", "Cost")),
            text_representation="Region,Cost\nSouth,40\n",
        ),
    ]

    result = asyncio.run(
        service.summarize_documents(documents, "### Document: north.csv\n...\n\n### Document: south.csv\n...\n\n")
    )

    assert list(result.per_document) == ["north.csv", "south.csv"]
    assert result.combined_summary.key_insights


def test_summarize_documents_requires_documents(clock, recording_sleep) -> None:
    with pytest.raises(ValueError):
        asyncio.run(_service(clock, recording_sleep).summarize_documents([], "x"))


def test_summarize_documents_rejects_blank_combined_data_before_any_call(clock, recording_sleep) -> None:
    adapter = MockLLMAdapter()
    service = _service(clock, recording_sleep, adapter)
    documents = [
        DocumentRecord(
            id="1",
            file_name="north.csv",
            table=ParsedTable(headers=("Region", "Sales")),
            text_representation="Region,Sales\nNorth,100\n",
        ),
    ]

    with pytest.raises(ValueError, match="Combined data"):
        asyncio.run(service.summarize_documents(documents, "  \n "))

    assert adapter.calls == 0


def test_answer_question_plain(clock, recording_sleep) -> None:
    result = asyncio.run(_service(clock, recording_sleep).answer_question(SALES_DATA, "Which month was best?"))

    assert result.forecast is None
    assert result.answer


def test_answer_question_forecast_is_formatted(clock, recording_sleep) -> None:
    result = asyncio.run(_service(clock, recording_sleep).answer_question(SALES_DATA, "Forecast next month"))

    assert result.forecast is not None
    assert result.answer.startswith("**Forecast:** ")
    assert "**Confidence:** Medium" in result.answer
    assert "**Assumptions:**\n- " in result.answer


def test_answer_question_requires_question(clock, recording_sleep) -> None:
    with pytest.raises(ValueError):
        asyncio.run(_service(clock, recording_sleep).answer_question(SALES_DATA, " "))


def test_fallback_to_next_model_on_overload(clock, recording_sleep) -> None:
    primary = OverloadedAdapter("primary")
    service = _service(clock, recording_sleep, primary, MockLLMAdapter())

    result = asyncio.run(service.summarize(SALES_DATA))

    assert result.summary.key_insights
    assert primary.calls == 1
    assert recording_sleep.delays == []


def test_overload_opens_shared_circuit(clock, recording_sleep) -> None:
    adapter = OverloadedAdapter()
    service = _service(clock, recording_sleep, adapter)

    with pytest.raises(TransientServiceError):
        asyncio.run(service.summarize(SALES_DATA))
    with pytest.raises(CircuitOpenError):
        asyncio.run(service.answer_question(SALES_DATA, "Which month was best?"))

    assert adapter.calls == 5
    status = service.service_status()
    assert status["circuit_open"] is True
    assert status["consecutive_failures"] == 5
    assert status["models"] == ["overloaded"]

    reset = service.reset_service_status()
    assert reset["circuit_open"] is False
    assert reset["is_healthy"] is True


def test_malformed_output_is_a_permanent_error(clock, recording_sleep) -> None:
    service = _service(clock, recording_sleep, BrokenJSONAdapter())

    with pytest.raises(PermanentServiceError):
        asyncio.run(service.answer_question(SALES_DATA, "Which month was best?"))

    assert service.service_status()["consecutive_failures"] == 0


def test_mock_adapter_defaults_to_summary() -> None:
    adapter = MockLLMAdapter()
    raw = asyncio.run(adapter.generate("no task line here"))
    assert "key_insights" in json.loads(raw)


def test_decode_error_offset_is_not_mistaken_for_overload(clock, recording_sleep) -> None:
    adapter = TruncatedJSONAdapter()
    service = _service(clock, recording_sleep, adapter)

    with pytest.raises(PermanentServiceError) as ctx:
        asyncio.run(service.answer_question(SALES_DATA, "Which month was best?"))

    assert "char 5020" in str(ctx.value)
    assert adapter.calls == 2
    assert recording_sleep.delays == []
    assert service.service_status()["consecutive_failures"] == 0
    assert service.service_status()["state"] == "closed"
