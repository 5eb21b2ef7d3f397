"""
app/schemas/analysis.py

Request and response schemas for analysis endpoints.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from llm_synthesis.schema import ForecastOutput, SpreadsheetSummary


class SummaryRequest(BaseModel):
    spreadsheet_data: str = Field(..., min_length=1)
    headers: list[str] | None = None


class SummaryResponse(BaseModel):
    summary: SpreadsheetSummary
    analysis_mode: str
    from_cache: bool = False


class DocumentInput(BaseModel):
    """
    One ingested document as sent back by the client.
    """

    file_name: str = Field(..., min_length=1)
    text_representation: str = Field(..., min_length=1)
    headers: list[str] = Field(default_factory=list)


class MultiSummaryRequest(BaseModel):
    documents: list[DocumentInput] = Field(..., min_length=1)
    combined_data: str = Field(..., min_length=1)


class MultiSummaryResponse(BaseModel):
    combined_summary: SpreadsheetSummary
    per_document: dict[str, SpreadsheetSummary] = Field(default_factory=dict)


class ChatRequest(BaseModel):
    spreadsheet_data: str = Field(..., min_length=1)
    question: str = Field(..., min_length=1)


class ChatResponse(BaseModel):
    answer: str
    forecast: ForecastOutput | None = None


class ServiceStatusResponse(BaseModel):
    """
    Shared LLM service health as seen by the circuit breaker.
    """

    name: str
    state: str
    is_healthy: bool
    consecutive_failures: int = Field(..., ge=0)
    circuit_open: bool
    failure_threshold: int
    reset_timeout_seconds: float
    retry_after_seconds: float
    models: list[str] = Field(default_factory=list)
    cached_results: int = Field(default=0, ge=0)

    @classmethod
    def from_status(cls, status: dict[str, Any]) -> "ServiceStatusResponse":
        return cls(**status)
