"""
app/api/routers/spreadsheet_ingestion.py

Spreadsheet upload HTTP endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, UploadFile

from app.api.dependencies import (
    close_uploads,
    get_spreadsheet_uploads,
    read_uploaded_spreadsheet,
    unread_upload,
)
from app.schemas.spreadsheet import SpreadsheetUploadResponse
from app.services.spreadsheet_ingestion_service import (
    SpreadsheetIngestionService,
    get_spreadsheet_ingestion_service,
)

router = APIRouter(tags=["ingestion"])


@router.post("/upload-spreadsheets", response_model=SpreadsheetUploadResponse)
async def upload_spreadsheets(
    files: list[UploadFile] = Depends(get_spreadsheet_uploads),
    ingestion_service: SpreadsheetIngestionService = Depends(get_spreadsheet_ingestion_service),
) -> SpreadsheetUploadResponse:
    """
    Ingest one or more CSV/XLSX/XLS files.

    Per-file failures are reported in ``errors``; the request itself only
    fails when no file was sent. Files beyond the batch limit are never
    read.
    """

    try:
        uploads = [
            await read_uploaded_spreadsheet(file, max_bytes=ingestion_service.max_file_size_bytes)
            if index < ingestion_service.max_files_per_batch
            else unread_upload(file)
            for index, file in enumerate(files)
        ]
        result = await ingestion_service.ingest_batch(uploads)
    finally:
        await close_uploads(files)
    return SpreadsheetUploadResponse.from_domain(result)
