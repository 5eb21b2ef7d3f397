"""Structured output schemas for spreadsheet analysis results."""

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

_STRICT_CONFIG = ConfigDict(
    extra="forbid",
    frozen=True,
    str_strip_whitespace=True,
)


class ColumnAnalysis(BaseModel):
    model_config = _STRICT_CONFIG

    column_name: str = Field(min_length=1)
    description: str = Field(min_length=1)


class RowFinding(BaseModel):
    model_config = _STRICT_CONFIG

    row_identifier: str = Field(min_length=1)
    finding: str = Field(min_length=1)


class DataQualityIssue(BaseModel):
    model_config = _STRICT_CONFIG

    issue: str = Field(min_length=1)
    recommendation: str = Field(min_length=1)


class SpreadsheetSummary(BaseModel):
    """Output contract for a spreadsheet summary."""

    model_config = _STRICT_CONFIG

    key_insights: List[str] = Field(default_factory=list)
    column_analyses: List[ColumnAnalysis] = Field(default_factory=list)
    row_level_findings: List[RowFinding] = Field(default_factory=list)
    data_quality_issues: List[DataQualityIssue] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "SpreadsheetSummary":
        return cls()


class QuestionAnswer(BaseModel):
    """Output contract for a follow-up question."""

    model_config = _STRICT_CONFIG

    answer: str = Field(min_length=1)


class ForecastOutput(BaseModel):
    """Output contract for a forecast question."""

    model_config = _STRICT_CONFIG

    forecast: str = Field(min_length=1)
    confidence: Literal["High", "Medium", "Low"]
    assumptions: List[str] = Field(default_factory=list)

    def to_markdown(self) -> str:
        assumptions = "\n- ".join(self.assumptions)
        return (
            f"**Forecast:** {self.forecast}\n\n"
            f"**Confidence:** {self.confidence}\n\n"
            f"**Assumptions:**\n- {assumptions}"
        )
