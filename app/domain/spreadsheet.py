"""
app/domain/spreadsheet.py

Domain models used by the spreadsheet ingestion and combination flow.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

Cell = Union[str, int, float]
"""One spreadsheet cell. The empty cell is the empty string."""

Trend = Literal["increase", "decrease", "stable"]

DOCUMENT_COLUMN = "Document"


@dataclass(frozen=True)
class UploadedSpreadsheet:
    """
    Transport-independent view of one uploaded file.
    """

    file_name: str
    content_type: str
    content: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ParsedTable:
    """
    Header row plus data rows of one sheet.

    Rows are aligned positionally to ``headers`` but are not required to
    be rectangular; a missing trailing cell reads as empty.
    """

    headers: tuple[str, ...] = ()
    rows: tuple[tuple[Cell, ...], ...] = ()
    numeric_columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class ColumnMetrics:
    """
    Aggregates of one numeric column.
    """

    total: float
    average: float
    min: float
    max: float
    trend: Trend


@dataclass(frozen=True)
class DocumentRecord:
    """
    One successfully ingested file.
    """

    id: str
    file_name: str
    table: ParsedTable
    text_representation: str
    metrics: dict[str, ColumnMetrics] = field(default_factory=dict)


@dataclass(frozen=True)
class CombinedDataset:
    """
    Union of several documents with a provenance column.
    """

    table: ParsedTable
    text_representation: str
    metrics: dict[str, ColumnMetrics] = field(default_factory=dict)


@dataclass(frozen=True)
class FileError:
    """
    Per-file ingestion failure; never aborts the batch.
    """

    file_name: str
    message: str
    kind: Literal["validation", "parse"] = "validation"

    def __str__(self) -> str:
        return f"{self.file_name}: {self.message}"


@dataclass(frozen=True)
class IngestionBatchResult:
    """
    Outcome of one multi-file upload.
    """

    documents: tuple[DocumentRecord, ...] = ()
    combined: CombinedDataset | None = None
    errors: tuple[FileError, ...] = ()

    @property
    def error_messages(self) -> list[str]:
        return [str(error) for error in self.errors]
