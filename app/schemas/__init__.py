"""
app/schemas package marker.
"""

from app.schemas.analysis import (
    ChatRequest,
    ChatResponse,
    MultiSummaryRequest,
    MultiSummaryResponse,
    ServiceStatusResponse,
    SummaryRequest,
    SummaryResponse,
)
from app.schemas.spreadsheet import DocumentResponse, SpreadsheetUploadResponse

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "DocumentResponse",
    "MultiSummaryRequest",
    "MultiSummaryResponse",
    "ServiceStatusResponse",
    "SpreadsheetUploadResponse",
    "SummaryRequest",
    "SummaryResponse",
]
