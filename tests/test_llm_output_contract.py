from __future__ import annotations

import asyncio
import json
import unittest

import pytest
from pydantic import ValidationError

from llm_synthesis.adapter import BaseLLMAdapter, MockLLMAdapter
from llm_synthesis.prompt_builder import AnalysisPromptBuilder
from llm_synthesis.retry import LLMRetryExhaustedError, generate_validated
from llm_synthesis.schema import ForecastOutput, QuestionAnswer, SpreadsheetSummary
from llm_synthesis.validator import LLMOutputValidationError, validate_llm_output


def _summary_payload() -> dict:
    return {
        "key_insights": ["Sales increased 50% from January to February"],
        "column_analyses": [{"column_name": "Sales", "description": "Monthly sales totals."}],
        "row_level_findings": [{"row_identifier": "Row 2", "finding": "Highest sales month."}],
        "data_quality_issues": [],
    }


class SequenceAdapter(BaseLLMAdapter):
    name = "sequence"

    def __init__(self, *responses: str) -> None:
        self._responses = list(responses)
        self.calls = 0

    async def generate(self, prompt: str) -> str:
        self.calls += 1
        return self._responses.pop(0)


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


def test_summary_contract() -> None:
    summary = SpreadsheetSummary(**_summary_payload())

    assert set(summary.model_dump().keys()) == {
        "key_insights",
        "column_analyses",
        "row_level_findings",
        "data_quality_issues",
    }
    assert summary.column_analyses[0].column_name == "Sales"


def test_summary_rejects_extra_fields() -> None:
    data = _summary_payload()
    data["extra_field"] = "not allowed"
    with pytest.raises(ValidationError):
        SpreadsheetSummary(**data)


def test_forecast_confidence_is_restricted() -> None:
    with pytest.raises(ValidationError):
        ForecastOutput(forecast="Up", confidence="Certain", assumptions=[])


def test_forecast_markdown() -> None:
    forecast = ForecastOutput(
        forecast="Sales will reach 200 next month",
        confidence="High",
        assumptions=["Growth continues", "No disruptions"],
    )

    assert forecast.to_markdown() == (
        "**Forecast:** Sales will reach 200 next month\n\n"
        "**Confidence:** High\n\n"
        "**Assumptions:**\n- Growth continues\n- No disruptions"
    )


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class TestValidateLLMOutput(unittest.TestCase):
    def test_accepts_plain_json(self) -> None:
        result = validate_llm_output(json.dumps({"answer": "42"}), QuestionAnswer)
        self.assertEqual(result.answer, "42")

    def test_strips_markdown_fences(self) -> None:
        raw = "```json\n" + json.dumps(_summary_payload()) + "\n```"
        result = validate_llm_output(raw, SpreadsheetSummary)
        self.assertEqual(len(result.key_insights), 1)

    def test_invalid_json_reports_parse_stage(self) -> None:
        with self.assertRaises(LLMOutputValidationError) as ctx:
            validate_llm_output("not json", QuestionAnswer)
        self.assertEqual(ctx.exception.stage, "json_parse")

    def test_non_object_reports_schema_stage(self) -> None:
        with self.assertRaises(LLMOutputValidationError) as ctx:
            validate_llm_output("[1, 2]", QuestionAnswer)
        self.assertEqual(ctx.exception.stage, "schema")

    def test_schema_errors_name_the_field(self) -> None:
        with self.assertRaises(LLMOutputValidationError) as ctx:
            validate_llm_output(json.dumps({"forecast": "x", "confidence": "Sure"}), ForecastOutput)
        self.assertEqual(ctx.exception.stage, "schema")
        self.assertTrue(any(error.startswith("confidence") for error in ctx.exception.errors))


# ---------------------------------------------------------------------------
# Format retries
# ---------------------------------------------------------------------------


def test_generate_validated_retries_malformed_output() -> None:
    adapter = SequenceAdapter("oops", json.dumps({"answer": "fine"}))

    result = asyncio.run(generate_validated(adapter, "prompt", QuestionAnswer, max_retries=2))

    assert result.answer == "fine"
    assert adapter.calls == 2


def test_generate_validated_gives_up_after_budget() -> None:
    adapter = SequenceAdapter("bad", "{}", "still bad")

    with pytest.raises(LLMRetryExhaustedError) as ctx:
        asyncio.run(generate_validated(adapter, "prompt", QuestionAnswer, max_retries=2))

    assert ctx.value.attempts == 3
    assert [error.stage for error in ctx.value.history] == ["json_parse", "schema", "json_parse"]


# ---------------------------------------------------------------------------
# Prompts and mock adapter
# ---------------------------------------------------------------------------


def test_mock_adapter_answers_each_task_type() -> None:
    builder = AnalysisPromptBuilder()
    adapter = MockLLMAdapter()
    data = "Month,Sales\nJan,100\nFeb,150\n"

    summary = validate_llm_output(
        asyncio.run(adapter.generate(builder.build_summary_prompt(data, "revenue_analysis"))),
        SpreadsheetSummary,
    )
    answer = validate_llm_output(
        asyncio.run(adapter.generate(builder.build_question_prompt(data, "Which month was best?"))),
        QuestionAnswer,
    )
    forecast = validate_llm_output(
        asyncio.run(adapter.generate(builder.build_forecast_prompt(data, "Forecast next month"))),
        ForecastOutput,
    )

    assert summary.key_insights[0] == "Data successfully parsed with 3 rows and 2 columns"
    assert "3 data rows" in answer.answer
    assert forecast.confidence == "Medium"
    assert adapter.calls == 3


def test_summary_prompt_names_mode_and_embeds_data() -> None:
    prompt = AnalysisPromptBuilder().build_summary_prompt("A,B\n1,2", analysis_mode="inventory_analysis")

    assert "Task type: summary" in prompt
    assert "Analysis mode: inventory_analysis" in prompt
    assert "A,B\n1,2" in prompt
    assert "key_insights" in prompt


def test_document_decoration_requests_citations() -> None:
    builder = AnalysisPromptBuilder()

    decorated = builder.decorate_document("q1.csv", "A\n1")
    combined = builder.decorate_combined("### Document: q1.csv\nA\n1\n\n")

    assert decorated.startswith("### Document: q1.csv\nA\n1")
    assert '(Source: q1.csv)' in decorated
    assert combined.startswith("You are analyzing multiple documents.")
