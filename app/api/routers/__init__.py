"""
app/api/routers package marker.
"""

from app.api.routers.analysis import router as analysis_router
from app.api.routers.spreadsheet_ingestion import router as spreadsheet_ingestion_router

__all__ = [
    "analysis_router",
    "spreadsheet_ingestion_router",
]
