"""
app/services package marker.
"""

from app.services.analysis_service import (
    AnalysisService,
    get_analysis_service,
    get_resilient_caller,
)
from app.services.spreadsheet_ingestion_service import (
    SpreadsheetIngestionService,
    get_spreadsheet_ingestion_service,
)

__all__ = [
    "AnalysisService",
    "get_analysis_service",
    "get_resilient_caller",
    "SpreadsheetIngestionService",
    "get_spreadsheet_ingestion_service",
]
