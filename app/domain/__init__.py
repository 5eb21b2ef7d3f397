"""
app/domain package marker.
"""

from app.domain.analysis import ChatAnswer, MultiDocumentSummary, SummaryResult
from app.domain.spreadsheet import (
    DOCUMENT_COLUMN,
    Cell,
    ColumnMetrics,
    CombinedDataset,
    DocumentRecord,
    FileError,
    IngestionBatchResult,
    ParsedTable,
    UploadedSpreadsheet,
)

__all__ = [
    "DOCUMENT_COLUMN",
    "Cell",
    "ChatAnswer",
    "ColumnMetrics",
    "CombinedDataset",
    "DocumentRecord",
    "FileError",
    "IngestionBatchResult",
    "MultiDocumentSummary",
    "ParsedTable",
    "SummaryResult",
    "UploadedSpreadsheet",
]
