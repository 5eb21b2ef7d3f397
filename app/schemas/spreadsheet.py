"""
app/schemas/spreadsheet.py

Response schemas for spreadsheet upload endpoints.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, Field

from app.domain.spreadsheet import ColumnMetrics, CombinedDataset, DocumentRecord, IngestionBatchResult

CellValue = Union[int, float, str]


class ColumnMetricsResponse(BaseModel):
    """
    Summary statistics of one numeric column.
    """

    total: float
    average: float
    min: float
    max: float
    trend: Literal["increase", "decrease", "stable"]

    @classmethod
    def from_domain(cls, metrics: ColumnMetrics) -> "ColumnMetricsResponse":
        return cls(
            total=metrics.total,
            average=metrics.average,
            min=metrics.min,
            max=metrics.max,
            trend=metrics.trend,
        )


class ParsedTableResponse(BaseModel):
    headers: list[str] = Field(default_factory=list)
    rows: list[list[CellValue]] = Field(default_factory=list)
    numeric_columns: list[str] = Field(default_factory=list)


class DocumentResponse(BaseModel):
    """
    API response model for one ingested file.
    """

    id: str
    file_name: str
    table: ParsedTableResponse
    text_representation: str
    metrics: dict[str, ColumnMetricsResponse] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, document: DocumentRecord) -> "DocumentResponse":
        return cls(
            id=document.id,
            file_name=document.file_name,
            table=ParsedTableResponse(
                headers=list(document.table.headers),
                rows=[list(row) for row in document.table.rows],
                numeric_columns=list(document.table.numeric_columns),
            ),
            text_representation=document.text_representation,
            metrics={name: ColumnMetricsResponse.from_domain(value) for name, value in document.metrics.items()},
        )


class CombinedDatasetResponse(BaseModel):
    table: ParsedTableResponse
    text_representation: str
    metrics: dict[str, ColumnMetricsResponse] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, combined: CombinedDataset) -> "CombinedDatasetResponse":
        return cls(
            table=ParsedTableResponse(
                headers=list(combined.table.headers),
                rows=[list(row) for row in combined.table.rows],
                numeric_columns=list(combined.table.numeric_columns),
            ),
            text_representation=combined.text_representation,
            metrics={name: ColumnMetricsResponse.from_domain(value) for name, value in combined.metrics.items()},
        )


class SpreadsheetUploadResponse(BaseModel):
    """
    API response model for a spreadsheet upload batch.
    """

    documents: list[DocumentResponse] = Field(default_factory=list)
    combined: CombinedDatasetResponse | None = None
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, result: IngestionBatchResult) -> "SpreadsheetUploadResponse":
        return cls(
            documents=[DocumentResponse.from_domain(document) for document in result.documents],
            combined=CombinedDatasetResponse.from_domain(result.combined) if result.combined is not None else None,
            errors=list(result.error_messages),
        )
