"""LLM adapters for spreadsheet analysis.

Provides a base interface and concrete adapters for OpenAI-compatible
APIs and a deterministic mock for testing.
"""

import json
import os
import re
from abc import ABC, abstractmethod
from typing import Dict, Optional

from openai import AsyncOpenAI

from llm_synthesis.prompt_builder import DATA_BEGIN_MARKER, DATA_END_MARKER, TASK_TYPE_PREFIX


class BaseLLMAdapter(ABC):
    """Abstract base for all LLM adapters."""

    name: str = "base"

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Send a prompt to the LLM and return the raw response text.

        Args:
            prompt: The fully formatted prompt string.

        Returns:
            Raw string response from the model (expected to be JSON).
        """


class OpenAILLMAdapter(BaseLLMAdapter):
    """Adapter for OpenAI-compatible chat completion APIs.

    Configured for deterministic, non-streaming output with
    low temperature suitable for structured JSON generation.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        max_tokens: int = 2048,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> None:
        """Initialise the OpenAI adapter.

        Args:
            model: Model identifier.
            max_tokens: Maximum tokens in the completion.
            api_key: OpenAI API key. Falls back to OPENAI_API_KEY env var.
            base_url: Optional base URL for OpenAI-compatible endpoints.
        """
        resolved_key = api_key or os.environ.get("OPENAI_API_KEY", "")
        client_kwargs: dict = {"api_key": resolved_key, "max_retries": 0}
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._model = model
        self._max_tokens = max_tokens
        self.name = model

    async def generate(self, prompt: str) -> str:
        """Call the OpenAI chat completion API.

        Retries are owned by the resilience layer, so the client is built
        with ``max_retries=0``.
        """
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0,
            top_p=1,
            max_tokens=self._max_tokens,
            stream=False,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content or ""


# ---------------------------------------------------------------------------
# Fixed mock responses used for local testing.
# ---------------------------------------------------------------------------
_MOCK_SUMMARY = {
    "key_insights": [
        "Data successfully parsed with {rows} rows and {columns} columns",
        "Sales trend shows 12% growth over the last quarter",
        "3 potential data quality issues detected",
    ],
    "column_analyses": [
        {
            "column_name": "Sales",
            "description": "Sales figures grow steadily with a seasonal peak in Q4.",
        },
        {
            "column_name": "Region",
            "description": "North and West regions show the highest performance.",
        },
    ],
    "row_level_findings": [
        {
            "row_identifier": "Row 2",
            "finding": "Highest single value in the dataset; worth reviewing as an outlier.",
        },
    ],
    "data_quality_issues": [
        {
            "issue": "Missing values detected in some columns",
            "recommendation": "Fill or flag empty cells before further analysis.",
        },
    ],
}

_MOCK_ANSWER = {
    "answer": "Based on the {rows} data rows provided, the values trend upward overall.",
}

_MOCK_FORECAST = {
    "forecast": "Values will likely continue the current trend over the next period.",
    "confidence": "Medium",
    "assumptions": [
        "Assumes the current growth rate continues",
        "Based on {rows} historical rows",
    ],
}

_MOCK_RESPONSES: Dict[str, dict] = {
    "summary": _MOCK_SUMMARY,
    "question": _MOCK_ANSWER,
    "forecast": _MOCK_FORECAST,
}

_TASK_PATTERN = re.compile(rf"^{re.escape(TASK_TYPE_PREFIX)}\s*(\w+)\s*$", re.MULTILINE)
_DATA_PATTERN = re.compile(
    rf"{re.escape(DATA_BEGIN_MARKER)}\n(.*?)\n?{re.escape(DATA_END_MARKER)}",
    re.DOTALL,
)


def _fill(template, rows: int, columns: int):
    if isinstance(template, str):
        return template.format(rows=rows, columns=columns)
    if isinstance(template, list):
        return [_fill(item, rows, columns) for item in template]
    if isinstance(template, dict):
        return {key: _fill(value, rows, columns) for key, value in template.items()}
    return template


class MockLLMAdapter(BaseLLMAdapter):
    """Deterministic adapter that returns a valid JSON response per task.

    Used for local testing and CI pipelines where no LLM API
    is available. The response matches the task type named in the
    prompt and mentions the row and column count of the data section.
    """

    name = "mock"

    def __init__(self) -> None:
        self.calls = 0

    async def generate(self, prompt: str) -> str:
        self.calls += 1
        task_match = _TASK_PATTERN.search(prompt)
        task = task_match.group(1) if task_match else "summary"
        template = _MOCK_RESPONSES.get(task, _MOCK_SUMMARY)

        rows, columns = _count_shape(prompt)
        return json.dumps(_fill(template, rows, columns), indent=2)


def _count_shape(prompt: str):
    match = _DATA_PATTERN.search(prompt)
    if not match:
        return 0, 0
    lines = [line for line in match.group(1).split("\n") if line.strip()]
    if not lines:
        return 0, 0
    return len(lines), len(lines[0].split(","))
