"""
app/validators/spreadsheet_validator.py

File-level validation for spreadsheet uploads: declared type and size.
"""

from __future__ import annotations

from pathlib import PurePath

from app.domain.spreadsheet import FileError, UploadedSpreadsheet
from spreadsheet.parsing import SpreadsheetFormat

FORMAT_BY_CONTENT_TYPE: dict[str, SpreadsheetFormat] = {
    "text/csv": SpreadsheetFormat.CSV,
    "application/csv": SpreadsheetFormat.CSV,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": SpreadsheetFormat.XLSX,
    "application/vnd.ms-excel": SpreadsheetFormat.XLS,
}

FORMAT_BY_EXTENSION: dict[str, SpreadsheetFormat] = {
    ".csv": SpreadsheetFormat.CSV,
    ".xlsx": SpreadsheetFormat.XLSX,
    ".xls": SpreadsheetFormat.XLS,
}


class SpreadsheetFileValidator:
    """
    Validates one upload and resolves its spreadsheet format.
    """

    def __init__(self, *, max_file_size_bytes: int) -> None:
        self._max_file_size_bytes = max(1, max_file_size_bytes)

    @property
    def max_file_size_bytes(self) -> int:
        return self._max_file_size_bytes

    def validate(
        self,
        upload: UploadedSpreadsheet,
    ) -> tuple[SpreadsheetFormat | None, FileError | None]:
        """
        Return the resolved format, or a validation error for the file.
        """

        if upload.size_bytes > self._max_file_size_bytes:
            return None, FileError(
                file_name=upload.file_name,
                message=(
                    f"File exceeds the maximum of {self._max_file_size_bytes} bytes."
                ),
                kind="validation",
            )

        file_format = self.resolve_format(
            file_name=upload.file_name,
            content_type=upload.content_type,
        )
        if file_format is None:
            return None, FileError(
                file_name=upload.file_name,
                message="Unsupported file type. Please upload a CSV, XLSX, or XLS file.",
                kind="validation",
            )

        return file_format, None

    @staticmethod
    def resolve_format(*, file_name: str, content_type: str | None) -> SpreadsheetFormat | None:
        """
        Prefer the file extension; browsers declare CSV files as
        ``application/vnd.ms-excel`` on some platforms.
        """

        extension = PurePath((file_name or "").strip().lower()).suffix
        by_extension = FORMAT_BY_EXTENSION.get(extension)
        if by_extension is not None:
            return by_extension

        normalized_type = (content_type or "").split(";", 1)[0].strip().lower()
        return FORMAT_BY_CONTENT_TYPE.get(normalized_type)
