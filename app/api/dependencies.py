"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

from fastapi import File, HTTPException, UploadFile, status

from app.domain.spreadsheet import UploadedSpreadsheet

UPLOAD_READ_CHUNK_BYTES = 64 * 1024


def get_spreadsheet_uploads(files: list[UploadFile] | None = File(default=None)) -> list[UploadFile]:
    """
    Require at least one uploaded file. Type and size checks happen per
    file in the ingestion service so one bad file never rejects the batch.
    """

    uploads = [file for file in files or [] if (file.filename or "").strip()]
    if not uploads:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No files uploaded.",
        )
    return uploads


async def read_uploaded_spreadsheet(
    file: UploadFile,
    max_bytes: int,
    chunk_size: int = UPLOAD_READ_CHUNK_BYTES,
) -> UploadedSpreadsheet:
    """
    Read one multipart upload in chunks, stopping after ``max_bytes + 1``.

    An oversized file is never read in full; the extra byte is enough for
    the size check in the validator to reject it.
    """

    limit = max(0, max_bytes) + 1
    chunks: list[bytes] = []
    received = 0
    while received < limit:
        chunk = await file.read(min(chunk_size, limit - received))
        if not chunk:
            break
        chunks.append(chunk)
        received += len(chunk)

    return UploadedSpreadsheet(
        file_name=(file.filename or "").strip(),
        content_type=(file.content_type or "").strip().lower(),
        content=b"".join(chunks),
    )


def unread_upload(file: UploadFile) -> UploadedSpreadsheet:
    """
    Describe an upload whose content is never read (beyond the batch limit).
    """

    return UploadedSpreadsheet(
        file_name=(file.filename or "").strip(),
        content_type=(file.content_type or "").strip().lower(),
        content=b"",
    )


async def close_uploads(files: list[UploadFile]) -> None:
    for file in files:
        await file.close()
