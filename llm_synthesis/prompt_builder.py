"""Structured prompt builder for spreadsheet analysis."""

import json
from typing import Optional, Type

from pydantic import BaseModel

from llm_synthesis.schema import ForecastOutput, QuestionAnswer, SpreadsheetSummary

TASK_TYPE_PREFIX = "Task type:"
DATA_BEGIN_MARKER = "<<<SPREADSHEET DATA"
DATA_END_MARKER = "SPREADSHEET DATA>>>"

MULTI_DOCUMENT_HEADER = (
    'You are analyzing multiple documents. Each section starts with "### Document: <fileName>".\n'
    "When you cite facts, append the source document in parentheses. "
    "If insights span multiple documents, list all sources."
)

_OUTPUT_RULES = """\
STRICT RULES:
- Use ONLY the data provided below. Do not invent rows, columns or values.
- Return strictly valid JSON matching the schema defined below.
- Do NOT include any text outside the JSON object.
- Do NOT wrap the JSON in markdown code fences.
"""

_SUMMARY_INSTRUCTIONS = """\
You are a data analyst that explains findings in simple, clear, and actionable terms.

Analyze the data and structure your response as follows:
1. key_insights: 3-5 main discoveries in plain English (trends, totals, outliers).
2. column_analyses: for each important column, what it shows and why it matters.
3. row_level_findings: specific noteworthy records such as outliers or anomalies.
4. data_quality_issues: missing values, inconsistent formats or suspicious entries,
   each with a practical recommendation.
"""

_MODE_FOCUS = {
    "revenue_analysis": "Focus on revenue, sales volume, pricing and growth trends.",
    "feedback_analysis": "Focus on satisfaction scores, sentiment and recurring feedback themes.",
    "project_tracking": "Focus on task status, deadlines, owners and delivery risks.",
    "inventory_analysis": "Focus on stock levels, reorder needs and supplier patterns.",
    "general": "Give a balanced overview of the most important patterns.",
}

_QUESTION_INSTRUCTIONS = """\
You are an AI assistant that answers questions about spreadsheet data.
Answer the question using the spreadsheet data. Be concise and clear.
"""

_FORECAST_INSTRUCTIONS = """\
You are a business analyst that creates clear, practical forecasts from data.

1. forecast: a direct, specific answer in plain English with concrete numbers or ranges.
2. confidence: High (clear, consistent patterns), Medium (some variability)
   or Low (limited or volatile data).
3. assumptions: the key assumptions behind the forecast.
"""


def _schema_section(output_model: Type[BaseModel]) -> str:
    schema = json.dumps(output_model.model_json_schema(), indent=2)
    return (
        "# OUTPUT SCHEMA\n\n"
        "Your response MUST conform to this JSON schema:\n\n"
        f"```json\n{schema}\n```\n"
    )


def _data_section(spreadsheet_data: str) -> str:
    return f"# SPREADSHEET DATA\n\n{DATA_BEGIN_MARKER}\n{spreadsheet_data}\n{DATA_END_MARKER}\n"


class AnalysisPromptBuilder:
    """Builds deterministic prompts for the summary, question and forecast tasks."""

    def build_summary_prompt(self, spreadsheet_data: str, analysis_mode: str = "general") -> str:
        focus = _MODE_FOCUS.get(analysis_mode, _MODE_FOCUS["general"])
        return "\n".join(
            [
                f"{TASK_TYPE_PREFIX} summary",
                f"Analysis mode: {analysis_mode}",
                "",
                _SUMMARY_INSTRUCTIONS,
                focus,
                "",
                _OUTPUT_RULES,
                _data_section(spreadsheet_data),
                _schema_section(SpreadsheetSummary),
            ]
        )

    def build_question_prompt(self, spreadsheet_data: str, question: str) -> str:
        return self._build_question_style(
            "question", _QUESTION_INSTRUCTIONS, spreadsheet_data, question, QuestionAnswer
        )

    def build_forecast_prompt(self, spreadsheet_data: str, question: str) -> str:
        return self._build_question_style(
            "forecast", _FORECAST_INSTRUCTIONS, spreadsheet_data, question, ForecastOutput
        )

    @staticmethod
    def decorate_document(file_name: str, text_representation: str) -> str:
        """Wrap one document's text with its marker and a citation hint."""
        return (
            f"### Document: {file_name}\n{text_representation}\n\n"
            f'When citing facts, include "(Source: {file_name})".'
        )

    @staticmethod
    def decorate_combined(combined_text: str, header: Optional[str] = None) -> str:
        """Prefix the combined text with the multi-document instructions."""
        return f"{header or MULTI_DOCUMENT_HEADER}\n\n{combined_text}"

    @staticmethod
    def _build_question_style(
        task: str,
        instructions: str,
        spreadsheet_data: str,
        question: str,
        output_model: Type[BaseModel],
    ) -> str:
        return "\n".join(
            [
                f"{TASK_TYPE_PREFIX} {task}",
                "",
                instructions,
                _OUTPUT_RULES,
                _data_section(spreadsheet_data),
                f"# QUESTION\n\n{question.strip()}\n",
                _schema_section(output_model),
            ]
        )
