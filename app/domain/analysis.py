"""
app/domain/analysis.py

Result types returned by the analysis service.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from llm_synthesis.schema import ForecastOutput, SpreadsheetSummary


@dataclass(frozen=True)
class SummaryResult:
    summary: SpreadsheetSummary
    analysis_mode: str
    from_cache: bool = False


@dataclass(frozen=True)
class MultiDocumentSummary:
    """
    Combined summary plus one summary per source file, keyed by file name.
    """

    combined_summary: SpreadsheetSummary
    per_document: dict[str, SpreadsheetSummary] = field(default_factory=dict)


@dataclass(frozen=True)
class ChatAnswer:
    """
    Answer text for one question. ``forecast`` is set when the question was
    routed to the forecast prompt; ``answer`` then holds its markdown form.
    """

    answer: str
    forecast: ForecastOutput | None = None
