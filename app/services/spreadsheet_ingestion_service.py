"""
app/services/spreadsheet_ingestion_service.py

Service layer for spreadsheet ingestion.

Each uploaded file is validated, decoded, capped and summarized
independently:

    1. SpreadsheetFileValidator.validate()  - size and declared type
    2. read_grid()                          - CSV text or first worksheet
    3. analyze_columns()                    - numeric columns + metrics
    4. to_delimited_text()                  - sampled text for analysis

A batch fans out one worker thread per file and joins once every file has
either produced a DocumentRecord or a FileError. One failing file never
aborts the batch. When two or more documents succeed they are merged by
combine_documents().
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from functools import lru_cache
from typing import Sequence

from app.config import get_spreadsheet_ingestion_settings
from app.domain.spreadsheet import (
    Cell,
    ColumnMetrics,
    DocumentRecord,
    FileError,
    IngestionBatchResult,
    ParsedTable,
    UploadedSpreadsheet,
)
from app.validators.spreadsheet_validator import SpreadsheetFileValidator
from spreadsheet.combiner import combine_documents
from spreadsheet.metrics import analyze_columns
from spreadsheet.parsing import SpreadsheetParseError, format_cell, read_grid, to_delimited_text

logger = logging.getLogger(__name__)


class SpreadsheetIngestionService:
    """
    Coordinates per-file validation, parsing, metrics and batch combination.
    """

    def __init__(
        self,
        *,
        max_rows: int,
        max_file_size_bytes: int,
        sample_rows_for_text: int,
        max_files_per_batch: int,
        validator: SpreadsheetFileValidator | None = None,
    ) -> None:
        self._max_rows = max(1, max_rows)
        self._sample_rows_for_text = max(0, sample_rows_for_text)
        self._max_files_per_batch = max(1, max_files_per_batch)
        self._validator = validator or SpreadsheetFileValidator(
            max_file_size_bytes=max_file_size_bytes,
        )

    @property
    def max_file_size_bytes(self) -> int:
        return self._validator.max_file_size_bytes

    @property
    def max_files_per_batch(self) -> int:
        return self._max_files_per_batch

    def ingest_file(self, upload: UploadedSpreadsheet) -> DocumentRecord | FileError:
        """
        Ingest one file. Expected failures are returned, never raised.
        """

        file_format, validation_error = self._validator.validate(upload)
        if validation_error is not None:
            self._log_file_error(validation_error)
            return validation_error

        try:
            grid = read_grid(upload.content, file_format)
        except SpreadsheetParseError as exc:
            error = FileError(file_name=upload.file_name, message=str(exc), kind="parse")
            self._log_file_error(error)
            return error

        table, metrics = self._build_table(grid)
        text_representation = to_delimited_text(
            table.headers,
            table.rows[: self._sample_rows_for_text],
        )

        logger.info(
            "Spreadsheet ingested file=%r format=%s rows=%s columns=%s numeric_columns=%s",
            upload.file_name,
            file_format.value,
            len(table.rows),
            len(table.headers),
            len(table.numeric_columns),
        )

        return DocumentRecord(
            id=uuid.uuid4().hex,
            file_name=upload.file_name,
            table=table,
            text_representation=text_representation,
            metrics=metrics,
        )

    async def ingest_batch(self, uploads: Sequence[UploadedSpreadsheet]) -> IngestionBatchResult:
        """
        Ingest every upload concurrently and combine the successful ones.

        Uploads beyond the per-batch file limit are rejected with a
        validation error. Documents keep the order of *uploads*.
        """

        accepted = list(uploads[: self._max_files_per_batch])
        errors: list[FileError] = [
            FileError(
                file_name=upload.file_name,
                message=f"Too many files; at most {self._max_files_per_batch} files can be uploaded at once.",
                kind="validation",
            )
            for upload in uploads[self._max_files_per_batch :]
        ]
        for error in errors:
            self._log_file_error(error)

        outcomes = await asyncio.gather(*(self._ingest_isolated(upload) for upload in accepted))

        documents: list[DocumentRecord] = []
        for outcome in outcomes:
            if isinstance(outcome, FileError):
                errors.append(outcome)
            else:
                documents.append(outcome)

        combined = combine_documents(documents) if len(documents) > 1 else None

        logger.info(
            "Spreadsheet batch ingested files=%s documents=%s errors=%s combined=%s",
            len(uploads),
            len(documents),
            len(errors),
            combined is not None,
        )

        return IngestionBatchResult(
            documents=tuple(documents),
            combined=combined,
            errors=tuple(errors),
        )

    # ------------------------------------------------------------------
    # Ingestion internals
    # ------------------------------------------------------------------

    async def _ingest_isolated(self, upload: UploadedSpreadsheet) -> DocumentRecord | FileError:
        try:
            return await asyncio.to_thread(self.ingest_file, upload)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Unexpected spreadsheet ingestion failure file=%r: %s",
                upload.file_name,
                exc,
            )
            return FileError(
                file_name=upload.file_name,
                message=str(exc) or "Failed to process file.",
                kind="parse",
            )

    def _build_table(self, grid: list[list[Cell]]) -> tuple[ParsedTable, dict[str, ColumnMetrics]]:
        if not grid:
            return ParsedTable(), {}

        headers = tuple(format_cell(cell) for cell in grid[0])
        rows = tuple(tuple(row) for row in grid[1 : self._max_rows + 1])
        numeric_columns, metrics = analyze_columns(headers, rows)
        return ParsedTable(headers=headers, rows=rows, numeric_columns=numeric_columns), metrics

    @staticmethod
    def _log_file_error(error: FileError) -> None:
        logger.warning(
            "Spreadsheet rejected file=%r kind=%s message=%s",
            error.file_name,
            error.kind,
            error.message,
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_spreadsheet_ingestion_service() -> SpreadsheetIngestionService:
    """
    Build and cache the ingestion service with env-driven settings.
    """
    settings = get_spreadsheet_ingestion_settings()
    return SpreadsheetIngestionService(
        max_rows=settings.max_rows,
        max_file_size_bytes=settings.max_file_size_bytes,
        sample_rows_for_text=settings.sample_rows_for_text,
        max_files_per_batch=settings.max_files_per_batch,
    )
